"""
adkit CLI entry point.

Usage:
    adkit list [DIR]                    List agents found under DIR
    adkit run AGENT -m MESSAGE          Load an agent and send it one message
    adkit cache clean [DIR]             Remove compiled agent caches
    adkit config show                   Show current configuration
    adkit --version                     Show version
"""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Optional

from adkit import __version__
from adkit.config.loader import load_config
from adkit.config.schemas import ADKConfig
from adkit.errors import ADKError
from adkit.loader.compiler import remove_cache_dir
from adkit.loader.project import find_project_root
from adkit.loader.scanner import AgentScanner
from adkit.manager.agent_manager import AgentManager, Attachment
from adkit.telemetry.logger import get_logger, setup_logging


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="adkit",
        description="Discover, load and run agents",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  adkit list agents                  List agents under ./agents
  adkit run foo --dir agents -m hi   Send "hi" to the agent at agents/foo
  adkit cache clean                  Remove .adk-cache directories
  adkit config show                  Display current settings
        """,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    parser.add_argument(
        "--config",
        type=Path,
        metavar="PATH",
        help="Path to custom configuration file",
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Override log level",
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Show tracebacks for agent load failures",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    list_parser = subparsers.add_parser("list", help="List discovered agents")
    list_parser.add_argument("dir", nargs="?", type=Path, default=None, help="Directory to scan")

    run_parser = subparsers.add_parser("run", help="Send one message to an agent")
    run_parser.add_argument("agent", help="Agent path as shown by 'adkit list'")
    run_parser.add_argument("--dir", type=Path, default=None, help="Directory to scan")
    run_parser.add_argument("-m", "--message", required=True, help="Message to send")
    run_parser.add_argument(
        "--attach",
        type=Path,
        action="append",
        default=[],
        metavar="FILE",
        help="File to attach (repeatable)",
    )

    cache_parser = subparsers.add_parser("cache", help="Compiled module cache")
    cache_subparsers = cache_parser.add_subparsers(dest="cache_command")
    clean_parser = cache_subparsers.add_parser("clean", help="Remove compiled module caches")
    clean_parser.add_argument("dir", nargs="?", type=Path, default=None, help="Directory to scan")

    config_parser = subparsers.add_parser("config", help="Configuration management")
    config_subparsers = config_parser.add_subparsers(dest="config_command")
    config_subparsers.add_parser("show", help="Show current configuration")

    return parser


def _load(args: argparse.Namespace) -> ADKConfig:
    config = load_config(args.config)
    if args.log_level:
        config.log_level = args.log_level
    if args.debug:
        config.debug = True
    setup_logging(config.log_level, config.telemetry.log_file, config.telemetry.json_logs)
    return config


def cmd_list(config: ADKConfig, agents_dir: Optional[Path]) -> int:
    """Print discovered agents."""
    agents = AgentScanner(quiet=config.quiet).scan_agents(agents_dir or config.agents_dir)
    if not agents:
        print("No agents found")
        return 0

    print(f"Agents ({len(agents)} total):")
    print("-" * 60)
    for path, descriptor in sorted(agents.items()):
        print(f"  {path}")
        print(f"    Name: {descriptor.display_name}")
        print(f"    Project: {descriptor.project_root}")
    return 0


async def _run_agent(
    config: ADKConfig,
    agent_path: str,
    agents_dir: Path,
    message: str,
    attachments: list[Attachment],
) -> str:
    manager = AgentManager(config=config)
    manager.scan_agents(agents_dir)
    try:
        return await manager.send_message(agent_path, message, attachments)
    finally:
        await manager.stop_all_agents()


def cmd_run(config: ADKConfig, args: argparse.Namespace) -> int:
    """Load an agent, send it a message and print the reply."""
    try:
        attachments = [Attachment.from_file(p) for p in args.attach]
    except OSError as e:
        print(f"Error reading attachment: {e}", file=sys.stderr)
        return 1

    try:
        reply = asyncio.run(
            _run_agent(config, args.agent, args.dir or config.agents_dir, args.message, attachments)
        )
    except ADKError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(reply)
    return 0


def cmd_cache_clean(config: ADKConfig, agents_dir: Optional[Path]) -> int:
    """Remove the compiled module cache of every project with agents."""
    scan_dir = agents_dir or config.agents_dir
    agents = AgentScanner(quiet=True).scan_agents(scan_dir)

    roots = {descriptor.project_root for descriptor in agents.values()}
    if Path(scan_dir).is_dir():
        roots.add(find_project_root(scan_dir))

    removed = 0
    for root in sorted(roots):
        try:
            if remove_cache_dir(root, config.cache_dir_name):
                removed += 1
                print(f"Removed {root / config.cache_dir_name}")
        except OSError as e:
            print(f"Failed to remove cache in {root}: {e}", file=sys.stderr)

    print(f"Cleaned {removed} cache director{'y' if removed == 1 else 'ies'}")
    return 0


def cmd_config_show(config: ADKConfig) -> int:
    """Show current configuration."""
    print("Current adkit Configuration:")
    print("=" * 50)
    print(config.model_dump_json(indent=2))
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point for the CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    try:
        config = _load(args)
    except Exception as e:
        print(f"Error loading configuration: {e}", file=sys.stderr)
        return 1

    logger = get_logger(__name__)
    logger.debug("adkit starting", version=__version__, command=args.command)

    if args.command == "list":
        return cmd_list(config, args.dir)

    elif args.command == "run":
        return cmd_run(config, args)

    elif args.command == "cache":
        if args.cache_command == "clean":
            return cmd_cache_clean(config, args.dir)
        parser.parse_args(["cache", "--help"])
        return 1

    elif args.command == "config":
        if args.config_command == "show":
            return cmd_config_show(config)
        parser.parse_args(["config", "--help"])
        return 1

    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
