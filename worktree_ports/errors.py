"""
Error definitions for the worktree port allocator.

This module defines custom exception classes for the failures that can
occur while allocating, reporting and releasing port blocks.
"""


class AllocatorError(Exception):
    """Base exception for all allocator errors."""
    
    def __init__(self, message: str, workspace: str = None):
        """
        Initialize the allocator error.
        
        Args:
            message: Error message
            workspace: Workspace root the error relates to (optional)
        """
        self.message = message
        self.workspace = workspace
        super().__init__(self._format_message())
    
    def _format_message(self) -> str:
        """Format the error message with the workspace if available."""
        if self.workspace:
            return f"[{self.workspace}] {self.message}"
        return self.message


class AlreadyAllocatedError(AllocatorError):
    """Allocation requested for a workspace that already holds a record."""
    
    def __init__(self, message: str, workspace: str = None, start_port: int = None):
        self.start_port = start_port
        super().__init__(message, workspace)
    
    def _format_message(self) -> str:
        base_message = super()._format_message()
        if self.start_port is not None:
            return f"{base_message} (start: {self.start_port})"
        return base_message


class RootWorkspaceError(AllocatorError):
    """Allocation requested for the primary worktree."""


class UnknownWorkspaceError(AllocatorError):
    """Allocation requested for a path that is not a worktree root of the repository."""


class NoSpaceError(AllocatorError):
    """No contiguous gap of the requested size is left in the port space."""
    
    def __init__(
        self,
        message: str,
        needed: int = None,
        base: int = None,
        ceiling: int = None,
        workspace: str = None
    ):
        """
        Initialize the no-space error.
        
        Args:
            message: Error message
            needed: Requested block size (optional)
            base: Lower bound of the port space (optional)
            ceiling: Upper bound of the port space (optional)
            workspace: Workspace root the allocation was for (optional)
        """
        self.needed = needed
        self.base = base
        self.ceiling = ceiling
        super().__init__(message, workspace)
    
    def _format_message(self) -> str:
        """Format the error message with the requested size and range."""
        base_message = super()._format_message()
        if self.needed is not None:
            base_message = f"{base_message} (needed: {self.needed})"
        if self.base is not None and self.ceiling is not None:
            base_message = f"{base_message} (range: {self.base}-{self.ceiling})"
        return base_message


class RegistryUnavailable(AllocatorError):
    """The workspace enumeration failed or timed out."""
    
    def __init__(self, message: str, repo: str = None):
        """
        Initialize the registry error.
        
        Args:
            message: Error message
            repo: Repository that was being enumerated (optional)
        """
        self.repo = repo
        super().__init__(message)
    
    def _format_message(self) -> str:
        base_message = super()._format_message()
        if self.repo:
            return f"{base_message} (repo: {self.repo})"
        return base_message


class NotAllocatedError(AllocatorError):
    """Reporting requested for a workspace without a record."""


class RecordFormatError(AllocatorError):
    """An allocation record file exists but cannot be parsed."""
    
    def __init__(self, message: str, path: str = None):
        self.path = path
        super().__init__(message)
    
    def _format_message(self) -> str:
        base_message = super()._format_message()
        if self.path:
            return f"{base_message} (path: {self.path})"
        return base_message


class TemplateError(AllocatorError):
    """The port requirement template is missing or unreadable."""
    
    def __init__(self, message: str, path: str = None):
        self.path = path
        super().__init__(message)
    
    def _format_message(self) -> str:
        base_message = super()._format_message()
        if self.path:
            return f"{base_message} (path: {self.path})"
        return base_message


class LockTimeoutError(AllocatorError):
    """The allocation lock could not be acquired in time."""
    
    def __init__(self, message: str, lock_path: str = None, timeout: float = None):
        self.lock_path = lock_path
        self.timeout = timeout
        super().__init__(message)
    
    def _format_message(self) -> str:
        base_message = super()._format_message()
        if self.lock_path:
            base_message = f"{base_message} (lock: {self.lock_path})"
        if self.timeout is not None:
            base_message = f"{base_message} (timeout: {self.timeout}s)"
        return base_message


class ConfigError(AllocatorError):
    """Error in configuration."""
    
    def __init__(self, message: str, config_key: str = None):
        """
        Initialize the configuration error.
        
        Args:
            message: Error message
            config_key: Configuration key that caused the error (optional)
        """
        self.config_key = config_key
        super().__init__(message)
    
    def _format_message(self) -> str:
        """Format the error message with config key if available."""
        base_message = super()._format_message()
        if self.config_key:
            return f"{base_message} (config: {self.config_key})"
        return base_message
