"""Entry point for netcore-devtools-mcp server."""

import argparse
import asyncio
import logging
import os
import sys

from .server import create_server, get_workspace
from .utils.project import resolve_workspace_root


def configure_logging() -> None:
    """Configure logging based on environment."""
    level = os.environ.get("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="NetCore DevTools MCP Server - .NET solution explorer with build-before-debug"
    )
    parser.add_argument(
        "--project",
        type=str,
        default=None,
        help="Workspace root. Relative paths passed to tools are resolved against it.",
    )
    parser.add_argument(
        "--project-from-cwd",
        action="store_true",
        default=False,
        help="Auto-detect the workspace from the current working directory. "
        "Searches upward for .sln, then .csproj/.vbproj/.fsproj. "
        "Cannot be used with --project.",
    )
    parser.add_argument(
        "--solution",
        type=str,
        default=None,
        help="Solution file to open on startup. Without it, the single .sln "
        "under the workspace root is opened if there is exactly one.",
    )
    return parser.parse_args(argv)


async def main() -> None:
    """Main entry point."""
    configure_logging()
    logger = logging.getLogger(__name__)

    args = parse_args()

    if args.project_from_cwd and args.project is not None:
        logger.error("--project-from-cwd cannot be used with --project")
        sys.exit(1)

    root = resolve_workspace_root(
        explicit_path=args.project,
        use_cwd=args.project_from_cwd,
        startup_cwd=os.getcwd(),
    )
    project_path = str(root) if root else None
    logger.info(f"Starting NetCore DevTools MCP Server (root: {project_path})...")

    mcp = create_server(project_path, solution=args.solution)

    try:
        await mcp.run_stdio_async()
    except Exception:
        logger.exception("Server error")
        raise
    finally:
        await get_workspace().shutdown()
        logger.info("Server stopped")


def run() -> None:
    """Run the server."""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    run()
