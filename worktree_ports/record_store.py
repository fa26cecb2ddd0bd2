"""
Allocation record storage for the worktree port allocator.

Each worktree keeps its own record in a one-line index file holding two
whitespace-separated integers: the first port of the block and the block
size. The file is small enough to inspect by hand and is always replaced
as a whole.
"""

import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from .errors import RecordFormatError


logger = logging.getLogger(__name__)

DEFAULT_INDEX_FILE = ".gwt_index"


def _default_file_mode() -> int:
    """Mode a plain file created by this process would get (0666 minus umask)."""
    umask = os.umask(0)
    os.umask(umask)
    return 0o666 & ~umask


@dataclass(frozen=True, order=True)
class AllocationRecord:
    """A contiguous block of ports reserved by one worktree."""
    start_port: int
    block_size: int
    
    def __post_init__(self):
        if self.start_port < 0 or self.block_size < 0:
            raise ValueError(
                f"Invalid allocation record: start={self.start_port}, size={self.block_size}"
            )
    
    @property
    def end_port(self) -> int:
        """First port after the block (exclusive bound)."""
        return self.start_port + self.block_size
    
    @property
    def is_empty(self) -> bool:
        """Whether the record reserves no ports."""
        return self.block_size == 0
    
    def overlaps(self, other: "AllocationRecord") -> bool:
        """Check whether two non-empty blocks share at least one port."""
        if self.is_empty or other.is_empty:
            return False
        return self.start_port < other.end_port and other.start_port < self.end_port
    
    def to_line(self) -> str:
        """Serialize to the on-disk line format."""
        return f"{self.start_port} {self.block_size}\n"
    
    @classmethod
    def from_line(cls, line: str) -> "AllocationRecord":
        """
        Parse a record from its on-disk line format.
        
        Args:
            line: Text holding two whitespace-separated integers
        
        Returns:
            Parsed AllocationRecord
        
        Raises:
            ValueError: If the line is not a valid record
        """
        fields = line.split()
        if len(fields) != 2:
            raise ValueError(f"expected 2 fields, got {len(fields)}")
        return cls(start_port=int(fields[0]), block_size=int(fields[1]))
    
    def __str__(self) -> str:
        if self.is_empty:
            return "(no ports)"
        return f"{self.start_port}-{self.end_port - 1}"


class RecordStore:
    """Read, write and delete the allocation record of a worktree."""
    
    def __init__(self, file_name: str = DEFAULT_INDEX_FILE):
        """
        Initialize the record store.
        
        Args:
            file_name: Name of the index file inside each worktree root
        """
        self.file_name = file_name
    
    def path_for(self, workspace_root: Union[str, Path]) -> Path:
        """Return the index file path for a worktree root."""
        return Path(workspace_root) / self.file_name
    
    def read(self, workspace_root: Union[str, Path]) -> Optional[AllocationRecord]:
        """
        Read the allocation record of a worktree.
        
        Args:
            workspace_root: Worktree root directory
        
        Returns:
            The stored record, or None if the worktree has none
        
        Raises:
            RecordFormatError: If the index file exists but is not a valid record
        """
        path = self.path_for(workspace_root)
        try:
            content = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            raise RecordFormatError(f"Cannot read allocation record: {e}", path=str(path))
        
        lines = [line for line in content.splitlines() if line.strip()]
        if len(lines) != 1:
            raise RecordFormatError(
                f"Allocation record must hold exactly one line, found {len(lines)}",
                path=str(path)
            )
        
        try:
            return AllocationRecord.from_line(lines[0])
        except ValueError as e:
            raise RecordFormatError(f"Malformed allocation record: {e}", path=str(path))
    
    def write(self, workspace_root: Union[str, Path], record: AllocationRecord) -> Path:
        """
        Atomically replace the allocation record of a worktree.
        
        The record is written to a temporary file in the same directory and
        renamed over the index file, so readers see either the old record
        or the new one.
        
        Args:
            workspace_root: Worktree root directory
            record: Record to persist
        
        Returns:
            Path of the written index file
        """
        path = self.path_for(workspace_root)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f"{self.file_name}.", suffix=".tmp", dir=str(path.parent)
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(record.to_line())
                f.flush()
                os.fsync(f.fileno())
            os.chmod(tmp_name, _default_file_mode())
            os.replace(tmp_name, path)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass
            raise
        
        logger.debug(f"Wrote allocation record {record.to_line().strip()!r} to {path}")
        return path
    
    def delete(self, workspace_root: Union[str, Path]) -> bool:
        """
        Delete the allocation record of a worktree.
        
        Args:
            workspace_root: Worktree root directory
        
        Returns:
            True if a record was removed, False if none existed
        """
        path = self.path_for(workspace_root)
        try:
            path.unlink()
        except FileNotFoundError:
            logger.debug(f"No allocation record to delete at {path}")
            return False
        
        logger.debug(f"Deleted allocation record {path}")
        return True
