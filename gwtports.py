#!/usr/bin/env python3
"""
gwt-ports - Main Entry Point

Allocate, show and release per-worktree port blocks.
"""

import argparse
import json
import logging
import logging.handlers
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from worktree_ports import (
    AllocatorError,
    Config,
    GitWorktreeEnumerator,
    NotAllocatedError,
    PortAllocator,
    RequirementParser,
    TemplateError,
    compose_project_name,
    sanitize_name,
)
from worktree_ports.allocator import same_path


class JsonFormatter(logging.Formatter):
    """JSON formatter for structured logging."""
    
    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        
        if hasattr(record, "workspace"):
            log_data["workspace"] = record.workspace
        if hasattr(record, "port"):
            log_data["port"] = record.port
        
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        
        return json.dumps(log_data)


def setup_logging(config: Config, verbose: bool = False) -> None:
    """
    Set up logging configuration.
    
    Console output goes to stderr; stdout carries command results.
    
    Args:
        config: Configuration object
        verbose: Whether to enable verbose logging
    """
    log_level = logging.DEBUG if verbose else getattr(logging, config.get_log_level().upper(), logging.INFO)
    log_format = config.get_log_format()
    log_file = config.get_log_file()
    
    if log_format.lower() == "json":
        formatter = JsonFormatter()
    else:
        formatter = logging.Formatter(log_format)
    
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()
    
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)
    
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_path,
            maxBytes=1024 * 1024,  # 1MB
            backupCount=3
        )
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)
    
    component_levels = config.get("componentLogLevels", {})
    for component, level in component_levels.items():
        comp_logger = logging.getLogger(component)
        comp_logger.setLevel(getattr(logging, level.upper(), logging.INFO))


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parse command-line arguments.
    
    Args:
        argv: Arguments to parse (defaults to sys.argv)
    
    Returns:
        Parsed arguments namespace
    """
    parser = argparse.ArgumentParser(
        prog="gwt-ports",
        description="Allocate non-overlapping port blocks for git worktrees",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  gwt-ports allocate ../myrepo-feature-x > ../myrepo-feature-x/.env.ports
  gwt-ports ports
  gwt-ports list
  gwt-ports release ../myrepo-feature-x
        """
    )
    
    parser.add_argument(
        "--repo",
        type=str,
        default=None,
        help="Any directory inside the repository (default: the worktree path or cwd)"
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to a JSON configuration file"
    )
    parser.add_argument(
        "--env-file",
        type=str,
        default=None,
        help="Dotenv file with GWT_* overrides"
    )
    parser.add_argument(
        "--template",
        type=str,
        default=None,
        help="Env template to read port names from (default: primary worktree's .env.template)"
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging"
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["debug", "info", "warning", "error", "critical"],
        default=None,
        help="Override log level"
    )
    parser.add_argument(
        "--no-probe",
        action="store_true",
        help="Skip the check for ports already in use"
    )
    parser.add_argument(
        "--no-lock",
        action="store_true",
        help="Do not take the repository allocation lock"
    )
    
    subparsers = parser.add_subparsers(dest="command", required=True)
    
    allocate = subparsers.add_parser("allocate", help="Allocate a port block for a worktree")
    allocate.add_argument("path", nargs="?", default=None, help="Worktree root (default: current worktree)")
    allocate.add_argument("--table", action="store_true", help="Print a port table instead of NAME=port lines")
    
    release = subparsers.add_parser("release", help="Release the port block of a worktree")
    release.add_argument("path", nargs="?", default=None, help="Worktree root (default: current worktree)")
    
    ports = subparsers.add_parser("ports", help="Show the ports of a worktree")
    ports.add_argument("path", nargs="?", default=None, help="Worktree root (default: current worktree)")
    ports.add_argument("--env", action="store_true", help="Print NAME=port lines instead of a table")
    
    subparsers.add_parser("list", help="List all worktrees with their port ranges")
    
    return parser.parse_args(argv)


def load_config(args: argparse.Namespace) -> Config:
    """Load configuration and apply command-line overrides."""
    config = Config(args.config, env_file=args.env_file)
    if args.log_level:
        config.set("logging.level", args.log_level)
    if args.no_probe:
        config.set("probe.enabled", False)
    if args.no_lock:
        config.set("lock.enabled", False)
    return config


def resolve_worktree(args: argparse.Namespace, config: Config) -> Path:
    """Return the target worktree root: the top level of the given path or of the current directory."""
    target = Path(args.repo) if args.repo else Path.cwd()
    if getattr(args, "path", None):
        target = Path(args.path).resolve()
        # a removed worktree can still be released by its old path
        if not target.exists():
            return target
    enumerator = GitWorktreeEnumerator(target, timeout=config.get_registry_timeout())
    return enumerator.toplevel()


def read_requirement(allocator: PortAllocator, args: argparse.Namespace, config: Config) -> List[str]:
    """
    Read the port requirement from the template.
    
    Raises:
        TemplateError: If the template is missing
    """
    if args.template:
        template = Path(args.template)
    else:
        template = allocator.enumerator.primary_root() / config.get_template_file_name()
    parser = RequirementParser(suffix=config.get_port_suffix())
    return parser.parse_requirement(template)


def cmd_allocate(allocator: PortAllocator, args: argparse.Namespace, config: Config, root: Path) -> int:
    requirement = read_requirement(allocator, args, config)
    plan = allocator.allocate(root, requirement)
    
    if args.table:
        print(plan.describe())
        return 0
    
    extra = {}
    primary = allocator.enumerator.primary_root()
    for worktree in allocator.enumerator.list_worktrees():
        if same_path(worktree.path, root):
            branch = worktree.branch or root.name
            extra["WORKTREE_NAME"] = sanitize_name(branch)
            extra["COMPOSE_PROJECT_NAME"] = compose_project_name(primary.name, branch)
            break
    for line in plan.to_env_lines(extra):
        print(line)
    return 0


def cmd_release(allocator: PortAllocator, args: argparse.Namespace, config: Config, root: Path) -> int:
    allocator.release(root)
    return 0


def cmd_ports(allocator: PortAllocator, args: argparse.Namespace, config: Config, root: Path) -> int:
    try:
        requirement = read_requirement(allocator, args, config)
    except TemplateError as e:
        logging.warning(f"{e}; showing raw range only")
        requirement = []
    
    try:
        plan = allocator.current_plan(root, requirement)
    except NotAllocatedError:
        print("No port allocation found - not a managed worktree, or no ports allocated.")
        return 1
    
    if args.env:
        for line in plan.to_env_lines():
            print(line)
    else:
        print(plan.describe())
    return 0


def cmd_list(allocator: PortAllocator, args: argparse.Namespace, config: Config, root: Path) -> int:
    allocations = allocator.list_allocations()
    primary = allocator.enumerator.primary_root()
    
    print(f"Worktrees for {primary.name}:")
    print()
    print(f"  {'Branch':<20} {'Path':<44} Ports")
    print(f"  {'------':<20} {'----':<44} -----")
    for allocation in allocations:
        print(
            f"  {allocation.worktree.display_branch:<20} "
            f"{str(allocation.worktree.path):<44} "
            f"{allocation.port_info}"
        )
    return 0


COMMANDS = {
    "allocate": cmd_allocate,
    "release": cmd_release,
    "ports": cmd_ports,
    "list": cmd_list,
}


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point.
    
    Args:
        argv: Command-line arguments (defaults to sys.argv)
    
    Returns:
        Exit code (0 for success, non-zero for error)
    """
    args = parse_arguments(argv)
    
    try:
        config = load_config(args)
    except AllocatorError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    
    setup_logging(config, args.verbose)
    
    try:
        root = Path.cwd() if args.command == "list" else resolve_worktree(args, config)
        repo = args.repo or (root if root.exists() else Path.cwd())
        allocator = PortAllocator.from_config(config, repo)
        return COMMANDS[args.command](allocator, args, config, root)
    except AllocatorError as e:
        logging.error(f"{e}")
        return 1
    except Exception as e:
        logging.exception(f"Unexpected error: {e}")
        return 1


def run() -> None:
    """Console script entry point."""
    sys.exit(main())


if __name__ == "__main__":
    try:
        run()
    except KeyboardInterrupt:
        logging.info("Interrupted by user")
        sys.exit(130)
