"""
Advisory liveness probe for freshly allocated ports.

The allocation records are the only source of truth. This probe merely
reports ports of a new block that some process on the host already
listens on, which happens when services were started outside the
allocator. It never blocks, alters or fails an allocation.
"""

import logging
import socket
from dataclasses import dataclass
from typing import Dict, List, Optional, Set

import psutil


logger = logging.getLogger(__name__)


@dataclass
class PortCollision:
    """A planned port that is already bound on the host."""
    name: str
    port: int


class LivenessProbe:
    """Check planned ports against live socket state."""
    
    def __init__(self, host: str = "127.0.0.1"):
        """
        Initialize the probe.
        
        Args:
            host: Address used for the bind check fallback
        """
        self.host = host
    
    def _listening_ports(self) -> Optional[Set[int]]:
        """
        Return the ports with a listening TCP socket, or None if unknown.
        
        Listing connections needs elevated rights on some platforms.
        """
        try:
            return {
                conn.laddr.port
                for conn in psutil.net_connections(kind="tcp")
                if conn.laddr and conn.status == psutil.CONN_LISTEN
            }
        except (psutil.AccessDenied, psutil.Error, OSError) as e:
            logger.debug(f"Cannot list connections, falling back to bind checks: {e}")
            return None
    
    def _is_bound(self, port: int) -> bool:
        """Check whether binding the port fails."""
        try:
            with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
                s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
                s.bind((self.host, port))
                return False
        except OSError:
            return True
    
    def check(self, ports: Dict[str, int]) -> List[PortCollision]:
        """
        Report planned ports that are already in use.
        
        Args:
            ports: Mapping of name -> planned port
        
        Returns:
            One PortCollision per port in use (empty if none or unknown)
        """
        collisions = []
        try:
            listening = self._listening_ports()
            for name, port in ports.items():
                in_use = port in listening if listening is not None else self._is_bound(port)
                if in_use:
                    logger.warning(
                        f"Port {port} ({name}) is currently in use",
                        extra={"port": port}
                    )
                    collisions.append(PortCollision(name=name, port=port))
        except Exception as e:
            logger.warning(f"Port liveness check failed: {e}")
        return collisions
