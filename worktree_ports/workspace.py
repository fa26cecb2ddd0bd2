"""
Worktree enumeration for the port allocator.

This module lists the worktrees of a git repository so the allocator can
see every block that is currently reserved. The first worktree reported
by git is the primary one; it keeps a hand-maintained configuration and
never receives an automatic allocation.
"""

import logging
import re
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Union

from .errors import RegistryUnavailable


logger = logging.getLogger(__name__)

# Maximum length of a docker-safe worktree name
MAX_NAME_LENGTH = 50


@dataclass
class WorktreeInfo:
    """A worktree as reported by ``git worktree list --porcelain``."""
    path: Path
    head: Optional[str] = None
    branch: Optional[str] = None
    detached: bool = False
    bare: bool = False
    
    @property
    def display_branch(self) -> str:
        return self.branch or "(detached)"
    
    def __repr__(self) -> str:
        return f"WorktreeInfo(path={self.path}, branch={self.branch})"


def sanitize_name(branch: str) -> str:
    """
    Turn a branch name into a docker-safe name.
    
    Slashes and underscores become hyphens, the result is lowercased,
    one leading and one trailing hyphen are dropped and the name is cut
    to 50 characters.
    
    Args:
        branch: Git branch name
    
    Returns:
        Sanitized name
    """
    name = branch.replace("/", "-").replace("_", "-").lower()
    if name.startswith("-"):
        name = name[1:]
    if name.endswith("-"):
        name = name[:-1]
    return name[:MAX_NAME_LENGTH]


def compose_project_name(repo_name: str, branch: str) -> str:
    """Return the docker compose project name of a worktree."""
    return f"{repo_name}-{sanitize_name(branch)}"


def parse_porcelain(output: str) -> List[WorktreeInfo]:
    """
    Parse ``git worktree list --porcelain`` output.
    
    Args:
        output: Raw command output; blocks are separated by blank lines and
            the final block may lack a trailing blank line
    
    Returns:
        Worktrees in the order git reports them
    """
    worktrees = []
    current: Optional[WorktreeInfo] = None
    
    for line in output.splitlines():
        if line.startswith("worktree "):
            if current is not None:
                worktrees.append(current)
            current = WorktreeInfo(path=Path(line[len("worktree "):]))
        elif current is None:
            continue
        elif line.startswith("HEAD "):
            current.head = line[len("HEAD "):]
        elif line.startswith("branch "):
            current.branch = re.sub(r"^refs/heads/", "", line[len("branch "):])
        elif line == "detached":
            current.detached = True
        elif line == "bare":
            current.bare = True
        elif not line.strip():
            worktrees.append(current)
            current = None
    
    if current is not None:
        worktrees.append(current)
    
    return worktrees


class WorkspaceEnumerator:
    """Source of the worktree roots known to the allocator."""
    
    def list_worktrees(self) -> List[WorktreeInfo]:
        """
        Return every live worktree, the primary one first.
        
        Raises:
            RegistryUnavailable: If the worktrees cannot be listed
        """
        raise NotImplementedError
    
    def list_workspace_roots(self) -> List[Path]:
        """Return the root paths of every live worktree."""
        return [info.path for info in self.list_worktrees()]
    
    def primary_root(self) -> Path:
        """
        Return the root of the primary worktree.
        
        Raises:
            RegistryUnavailable: If no worktree is known
        """
        worktrees = self.list_worktrees()
        if not worktrees:
            raise RegistryUnavailable("No worktrees reported")
        return worktrees[0].path


class GitWorktreeEnumerator(WorkspaceEnumerator):
    """List worktrees by asking git."""
    
    def __init__(self, repo: Union[str, Path], timeout: float = 10, git: str = "git"):
        """
        Initialize the git enumerator.
        
        Args:
            repo: Any directory inside the repository
            timeout: Seconds to wait for git before giving up
            git: Git executable
        """
        self.repo = Path(repo)
        self.timeout = timeout
        self.git = git
    
    def _run_git(self, *args: str) -> str:
        """
        Run a git command in the repository and return its stdout.
        
        Raises:
            RegistryUnavailable: If git is missing, times out or fails
        """
        cmd = [self.git, "-C", str(self.repo), *args]
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False
            )
        except subprocess.TimeoutExpired:
            raise RegistryUnavailable(
                f"git {' '.join(args)} timed out after {self.timeout}s",
                repo=str(self.repo)
            )
        except OSError as e:
            raise RegistryUnavailable(f"Cannot run git: {e}", repo=str(self.repo))
        
        if result.returncode != 0:
            raise RegistryUnavailable(
                f"git {' '.join(args)} failed: {result.stderr.strip()}",
                repo=str(self.repo)
            )
        return result.stdout
    
    def list_worktrees(self) -> List[WorktreeInfo]:
        worktrees = parse_porcelain(self._run_git("worktree", "list", "--porcelain"))
        logger.debug(f"git reported {len(worktrees)} worktrees for {self.repo}")
        return worktrees
    
    def toplevel(self) -> Path:
        """Return the root of the worktree containing ``repo``."""
        return Path(self._run_git("rev-parse", "--show-toplevel").strip())


class StaticEnumerator(WorkspaceEnumerator):
    """Serve a fixed list of worktree roots, the first being the primary."""
    
    def __init__(self, roots: Sequence[Union[str, Path]]):
        self.roots = [Path(r) for r in roots]
    
    def list_worktrees(self) -> List[WorktreeInfo]:
        return [WorktreeInfo(path=root) for root in self.roots]
