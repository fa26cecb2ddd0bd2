"""
Port allocator facade.

This module ties the pieces together: it enumerates the worktrees of a
repository, scans their allocation records, searches for the lowest free
block and persists the result in the target worktree.

The scan-search-write sequence is only correct when allocations run one
at a time. By default it runs under a file lock shared by all worktrees
of the repository; with locking disabled, callers must serialize
invocations themselves.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Union

from .config import Config
from .errors import (
    AlreadyAllocatedError,
    NotAllocatedError,
    RegistryUnavailable,
    RootWorkspaceError,
    UnknownWorkspaceError,
)
from .gap_finder import DEFAULT_BASE, DEFAULT_CEILING, find_gap
from .locking import AllocationLock, NullLock
from .plan import PortPlan, dedupe_requirement
from .probe import LivenessProbe
from .record_store import AllocationRecord, RecordStore
from .registry import RegistryScanner
from .workspace import GitWorktreeEnumerator, WorkspaceEnumerator, WorktreeInfo


logger = logging.getLogger(__name__)


def same_path(a: Union[str, Path], b: Union[str, Path]) -> bool:
    """Compare two paths after resolving symlinks and relative parts."""
    return Path(a).resolve() == Path(b).resolve()


@dataclass
class WorkspaceAllocation:
    """Allocation state of one worktree, for listings."""
    worktree: WorktreeInfo
    record: Optional[AllocationRecord]
    is_primary: bool = False
    
    @property
    def port_info(self) -> str:
        if self.is_primary:
            return "(manual .env)"
        if self.record is None:
            return "-"
        return str(self.record)


class PortAllocator:
    """Allocate, report and release port blocks of worktrees."""
    
    def __init__(
        self,
        enumerator: WorkspaceEnumerator,
        store: Optional[RecordStore] = None,
        base: int = DEFAULT_BASE,
        ceiling: int = DEFAULT_CEILING,
        probe: Optional[LivenessProbe] = None,
        lock_enabled: bool = True,
        lock_file_name: str = "gwt-ports.lock",
        lock_timeout: float = 10
    ):
        """
        Initialize the allocator.
        
        Args:
            enumerator: Source of the repository's worktrees
            store: Record store (defaults to ``.gwt_index`` files)
            base: Lowest port that may be allocated
            ceiling: Upper bound of the port space
            probe: Liveness probe run after allocation (optional)
            lock_enabled: Whether to serialize allocations with a file lock
            lock_file_name: Name of the lock file
            lock_timeout: Seconds to wait for the lock
        """
        self.enumerator = enumerator
        self.store = store or RecordStore()
        self.scanner = RegistryScanner(self.store)
        self.base = base
        self.ceiling = ceiling
        self.probe = probe
        self.lock_enabled = lock_enabled
        self.lock_file_name = lock_file_name
        self.lock_timeout = lock_timeout
    
    @classmethod
    def from_config(cls, config: Config, repo: Union[str, Path]) -> "PortAllocator":
        """
        Build an allocator for a git repository from configuration.
        
        Args:
            config: Loaded configuration
            repo: Any directory inside the repository
        
        Returns:
            Configured PortAllocator
        """
        probe = None
        if config.get_probe_enabled():
            probe = LivenessProbe(host=config.get_probe_host())
        
        return cls(
            enumerator=GitWorktreeEnumerator(repo, timeout=config.get_registry_timeout()),
            store=RecordStore(config.get_index_file_name()),
            base=config.get_port_base(),
            ceiling=config.get_port_ceiling(),
            probe=probe,
            lock_enabled=config.get_lock_enabled(),
            lock_file_name=config.get_lock_file_name(),
            lock_timeout=config.get_lock_timeout()
        )
    
    def _lock_for(self, primary: Path):
        """Return the lock guarding allocations of the repository."""
        if not self.lock_enabled:
            return NullLock()
        git_dir = primary / ".git"
        lock_dir = git_dir if git_dir.is_dir() else primary
        return AllocationLock(lock_dir / self.lock_file_name, timeout=self.lock_timeout)
    
    def allocate(self, workspace_root: Union[str, Path], requirement: Sequence[str]) -> PortPlan:
        """
        Reserve a block of ports for a worktree.
        
        Args:
            workspace_root: Root of the worktree to allocate for
            requirement: Ordered port names; duplicates are dropped
        
        Returns:
            The plan of the new allocation
        
        Raises:
            RootWorkspaceError: If the worktree is the primary one
            UnknownWorkspaceError: If the path is not one of the listed worktrees
            AlreadyAllocatedError: If the worktree already holds a record
            NoSpaceError: If no gap of the required size is left
            RegistryUnavailable: If the worktrees cannot be listed
            LockTimeoutError: If another allocation holds the lock
        """
        root = Path(workspace_root)
        roots = self.enumerator.list_workspace_roots()
        if not roots:
            raise RegistryUnavailable("No worktrees reported")
        primary = roots[0]
        
        if same_path(root, primary):
            raise RootWorkspaceError(
                "Refusing to allocate ports for the primary worktree", str(root)
            )
        
        others = [r for r in roots if not same_path(r, root)]
        if len(others) == len(roots):
            raise UnknownWorkspaceError(
                "Not a worktree root of this repository", str(root)
            )
        
        names = dedupe_requirement(requirement)
        needed = len(names)
        
        with self._lock_for(primary):
            existing = self.store.read(root)
            if existing is not None:
                raise AlreadyAllocatedError(
                    "Worktree already has a port allocation; release it first",
                    str(root),
                    start_port=existing.start_port
                )
            
            occupied = self.scanner.occupied(others)
            start = find_gap(occupied, needed, self.base, self.ceiling)
            record = AllocationRecord(start_port=start, block_size=needed)
            self.store.write(root, record)
        
        plan = PortPlan.from_record(record, names, workspace=str(root))
        if needed:
            logger.info(f"Allocated ports {record} for {root}", extra={"workspace": str(root)})
            if self.probe is not None:
                self.probe.check(plan.ports)
        else:
            logger.info(f"Registered {root} without ports")
        return plan
    
    def release(self, workspace_root: Union[str, Path]) -> bool:
        """
        Delete the allocation record of a worktree.
        
        Tearing down the worktree's services is up to the caller.
        
        Args:
            workspace_root: Root of the worktree
        
        Returns:
            True if a record was removed, False if there was none
        
        Raises:
            RegistryUnavailable: If the worktrees cannot be listed
            LockTimeoutError: If another allocation holds the lock
        """
        root = Path(workspace_root)
        primary = self.enumerator.primary_root()
        
        with self._lock_for(primary):
            removed = self.store.delete(root)
        
        if removed:
            logger.info(f"Released port allocation of {root}", extra={"workspace": str(root)})
        else:
            logger.info(f"No port allocation to release for {root}")
        return removed
    
    def current_plan(self, workspace_root: Union[str, Path], requirement: Sequence[str]) -> PortPlan:
        """
        Rebuild the plan of an existing allocation.
        
        No other worktree is scanned or checked.
        
        Args:
            workspace_root: Root of the worktree
            requirement: Current ordered port names
        
        Returns:
            The worktree's plan
        
        Raises:
            NotAllocatedError: If the worktree has no record
            RecordFormatError: If the record is malformed
        """
        root = Path(workspace_root)
        record = self.store.read(root)
        if record is None:
            raise NotAllocatedError("No port allocation found", str(root))
        
        plan = PortPlan.from_record(record, requirement, workspace=str(root))
        if len(plan) > record.block_size:
            logger.warning(
                f"Template now needs {len(plan)} ports but {root} holds {record.block_size}; "
                f"release and allocate again to resize"
            )
        return plan
    
    def list_allocations(self) -> List[WorkspaceAllocation]:
        """
        Report the allocation state of every worktree.
        
        Returns:
            One entry per worktree, in the order git reports them
        
        Raises:
            RegistryUnavailable: If the worktrees cannot be listed
        """
        allocations = []
        for index, worktree in enumerate(self.enumerator.list_worktrees()):
            entry = self.scanner.read_entry(worktree.path)
            allocations.append(
                WorkspaceAllocation(
                    worktree=worktree,
                    record=entry.record if entry else None,
                    is_primary=index == 0
                )
            )
        return allocations
