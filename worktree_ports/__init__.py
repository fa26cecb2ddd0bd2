"""
Worktree Port Allocator Package

Hands out non-overlapping blocks of TCP ports to the git worktrees of a
repository, so parallel docker stacks never collide.
"""

from .allocator import PortAllocator, WorkspaceAllocation
from .config import Config
from .errors import (
    AllocatorError,
    AlreadyAllocatedError,
    ConfigError,
    LockTimeoutError,
    NoSpaceError,
    NotAllocatedError,
    RecordFormatError,
    RegistryUnavailable,
    RootWorkspaceError,
    TemplateError,
    UnknownWorkspaceError,
)
from .gap_finder import find_gap, occupied_blocks
from .locking import AllocationLock
from .plan import PortPlan, build_plan, dedupe_requirement
from .probe import LivenessProbe, PortCollision
from .record_store import AllocationRecord, RecordStore
from .registry import RegisteredAllocation, RegistryScanner
from .template import RequirementParser
from .workspace import (
    GitWorktreeEnumerator,
    StaticEnumerator,
    WorkspaceEnumerator,
    WorktreeInfo,
    compose_project_name,
    sanitize_name,
)

__version__ = "1.0.0"
__all__ = [
    "AllocationLock",
    "AllocationRecord",
    "AllocatorError",
    "AlreadyAllocatedError",
    "Config",
    "ConfigError",
    "GitWorktreeEnumerator",
    "LivenessProbe",
    "LockTimeoutError",
    "NoSpaceError",
    "NotAllocatedError",
    "PortAllocator",
    "PortCollision",
    "PortPlan",
    "RecordFormatError",
    "RecordStore",
    "RegisteredAllocation",
    "RegistryScanner",
    "RegistryUnavailable",
    "RequirementParser",
    "RootWorkspaceError",
    "StaticEnumerator",
    "TemplateError",
    "UnknownWorkspaceError",
    "WorkspaceAllocation",
    "WorkspaceEnumerator",
    "WorktreeInfo",
    "build_plan",
    "compose_project_name",
    "dedupe_requirement",
    "find_gap",
    "occupied_blocks",
    "sanitize_name",
]
