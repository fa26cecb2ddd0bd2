"""
Registry scanning: load the allocation records of all known worktrees.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Union

from .errors import RecordFormatError
from .gap_finder import occupied_blocks
from .record_store import AllocationRecord, RecordStore


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RegisteredAllocation:
    """An allocation record together with the worktree that owns it."""
    root: Path
    record: AllocationRecord


class RegistryScanner:
    """Collect the allocation records of a set of worktree roots."""
    
    def __init__(self, store: RecordStore):
        self.store = store
    
    def read_entry(self, root: Union[str, Path]) -> Optional[RegisteredAllocation]:
        """
        Read one worktree's record, treating unreadable records as absent.
        
        Args:
            root: Worktree root directory
        
        Returns:
            The registered allocation, or None if there is no usable record
        """
        try:
            record = self.store.read(root)
        except RecordFormatError as e:
            logger.warning(f"Ignoring allocation record of {root}: {e}")
            return None
        
        if record is None:
            logger.debug(f"No allocation record in {root}")
            return None
        return RegisteredAllocation(root=Path(root), record=record)
    
    def scan_entries(self, workspace_roots: Iterable[Union[str, Path]]) -> List[RegisteredAllocation]:
        """
        Read the records of all given roots.
        
        Args:
            workspace_roots: Worktree roots to scan
        
        Returns:
            Allocations ordered by start port
        """
        entries = []
        for root in workspace_roots:
            entry = self.read_entry(root)
            if entry is not None:
                entries.append(entry)
        
        entries.sort(key=lambda e: (e.record.start_port, e.record.block_size))
        logger.debug(f"Scanned {len(entries)} allocation records")
        return entries
    
    def scan(self, workspace_roots: Iterable[Union[str, Path]]) -> List[AllocationRecord]:
        """
        Read the records of all given roots.
        
        Args:
            workspace_roots: Worktree roots to scan
        
        Returns:
            Records ordered by start port, one per worktree that has one
        """
        return [entry.record for entry in self.scan_entries(workspace_roots)]
    
    def occupied(self, workspace_roots: Iterable[Union[str, Path]]) -> List[AllocationRecord]:
        """Return the non-empty records of the given roots, sorted for gap search."""
        return occupied_blocks(self.scan(workspace_roots))
