"""
Port plans: the concrete name -> port mapping of a worktree.

A plan is never stored. It is rebuilt from the allocation record and the
current port requirement whenever it is needed.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence

from .record_store import AllocationRecord


def dedupe_requirement(names: Iterable[str]) -> List[str]:
    """Remove duplicate names, keeping the position of the first occurrence."""
    seen = set()
    ordered = []
    for name in names:
        if name not in seen:
            seen.add(name)
            ordered.append(name)
    return ordered


def build_plan(requirement: Sequence[str], start: int) -> Dict[str, int]:
    """
    Assign consecutive ports to the names of a requirement.
    
    Args:
        requirement: Ordered, distinct port names
        start: Port assigned to the first name
    
    Returns:
        Ordered mapping of name -> port (empty for an empty requirement)
    """
    return {name: start + offset for offset, name in enumerate(requirement)}


@dataclass
class PortPlan:
    """Ports assigned to one worktree."""
    record: AllocationRecord
    ports: Dict[str, int] = field(default_factory=dict)
    workspace: Optional[str] = None
    
    @classmethod
    def from_record(
        cls,
        record: AllocationRecord,
        requirement: Sequence[str],
        workspace: Optional[str] = None
    ) -> "PortPlan":
        """Build the plan for a stored record and the current requirement."""
        return cls(
            record=record,
            ports=build_plan(dedupe_requirement(requirement), record.start_port),
            workspace=workspace
        )
    
    @property
    def start_port(self) -> int:
        return self.record.start_port
    
    @property
    def block_size(self) -> int:
        return self.record.block_size
    
    def __getitem__(self, name: str) -> int:
        return self.ports[name]
    
    def __contains__(self, name: str) -> bool:
        return name in self.ports
    
    def __len__(self) -> int:
        return len(self.ports)
    
    def to_env_lines(self, extra: Optional[Dict[str, str]] = None) -> List[str]:
        """
        Render the plan as NAME=value lines.
        
        Args:
            extra: Additional variables emitted before the ports (optional)
        
        Returns:
            Lines without trailing newlines, ports in requirement order
        """
        lines = [f"{key}={value}" for key, value in (extra or {}).items()]
        lines.extend(f"{name}={port}" for name, port in self.ports.items())
        return lines
    
    def describe(self) -> str:
        """Render a human-readable table of the plan."""
        if self.record.is_empty:
            return "No ports allocated for this worktree."
        
        lines = [f"Port allocations (range: {self.start_port}-{self.record.end_port - 1}):", "---"]
        if self.ports:
            for name, port in self.ports.items():
                lines.append(f"  {name:<30} {port}")
        else:
            lines.append("  (template not found, showing raw range only)")
            lines.append(f"  start_port:  {self.start_port}")
            lines.append(f"  block_size:  {self.block_size}")
        return "\n".join(lines)
