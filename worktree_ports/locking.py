"""
Inter-process lock around the scan-search-write sequence.

Two allocations started at the same time could otherwise both pick the
same gap. The lock file is shared by every worktree of a repository.
"""

import errno
import logging
import random
import time
from pathlib import Path
from typing import Optional, Union

from .errors import LockTimeoutError

try:
    import fcntl
except ImportError:  # Windows
    fcntl = None


logger = logging.getLogger(__name__)


class AllocationLock:
    """Exclusive advisory file lock with a bounded wait."""
    
    def __init__(self, path: Union[str, Path], timeout: float = 10):
        """
        Initialize the lock.
        
        Args:
            path: Lock file path; created if missing
            timeout: Seconds to wait for another holder before failing
        """
        self.path = Path(path)
        self.timeout = timeout
        self._file = None
    
    @property
    def locked(self) -> bool:
        return self._file is not None
    
    def acquire(self) -> None:
        """
        Take the lock, retrying with backoff until the timeout.
        
        Raises:
            LockTimeoutError: If the lock is still held after the timeout
        """
        if fcntl is None:
            logger.debug("File locking unavailable on this platform, continuing unlocked")
            return
        
        self.path.parent.mkdir(parents=True, exist_ok=True)
        lock_file = open(self.path, "a+")
        start = time.monotonic()
        delay = 0.01
        
        while True:
            try:
                fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
                break
            except OSError as e:
                if e.errno not in (errno.EAGAIN, errno.EACCES):
                    lock_file.close()
                    raise
                if time.monotonic() - start >= self.timeout:
                    lock_file.close()
                    raise LockTimeoutError(
                        "Another allocation is in progress",
                        lock_path=str(self.path),
                        timeout=self.timeout
                    )
                time.sleep(min(delay, 0.5) + random.uniform(0, 0.01))
                delay = min(delay * 2.0, 0.5)
        
        self._file = lock_file
        logger.debug(f"Acquired allocation lock {self.path}")
    
    def release(self) -> None:
        """Release the lock if held."""
        if self._file is None:
            return
        try:
            fcntl.flock(self._file.fileno(), fcntl.LOCK_UN)
        finally:
            self._file.close()
            self._file = None
        logger.debug(f"Released allocation lock {self.path}")
    
    def __enter__(self) -> "AllocationLock":
        self.acquire()
        return self
    
    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()


class NullLock:
    """Stand-in used when locking is disabled."""
    
    path: Optional[Path] = None
    
    def __enter__(self) -> "NullLock":
        return self
    
    def __exit__(self, exc_type, exc, tb) -> None:
        return None
