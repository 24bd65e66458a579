"""Command-line interface for depscout."""

import argparse
import asyncio
import json
import sys

import uvicorn

from depscout import __version__
from depscout.discovery.service import DiscoveryService
from depscout.discovery.session import DiscoverySession, SessionStatus
from depscout.exceptions import ConfigError
from depscout.logging_config import configure_logging


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="depscout",
        description="depscout - autonomous dependency rule discovery",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    subparsers = parser.add_subparsers(dest="command")

    serve = subparsers.add_parser("serve", help="Run the REST API server (default)")
    serve.add_argument(
        "--host",
        default="127.0.0.1",
        help="Host to bind to (default: 127.0.0.1)",
    )
    serve.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port to bind to (default: 8000)",
    )
    serve.add_argument(
        "--reload",
        action="store_true",
        help="Enable auto-reload for development",
    )

    discover = subparsers.add_parser("discover", help="Run one discovery and print a summary")
    discover.add_argument("path", help="Project directory to analyze")
    discover.add_argument(
        "--max-concurrency",
        type=int,
        default=None,
        help="Dependencies discovered at once (default: 5)",
    )
    discover.add_argument(
        "--min-confidence",
        type=float,
        default=None,
        help="Drop rules below this confidence (default: 0.5)",
    )
    discover.add_argument(
        "--no-inference",
        action="store_true",
        help="Never call AI providers",
    )
    discover.add_argument(
        "--no-cache",
        action="store_true",
        help="Do not write results to the project cache",
    )
    return parser


def summarize(session: DiscoverySession) -> dict[str, object]:
    """Compact JSON-friendly summary of a finished session."""
    return {
        "session_id": session.id,
        "project_path": session.project_path,
        "status": session.status.value,
        "manifests": session.progress.manifests,
        "dependencies": session.progress.dependencies,
        "discovered_rules": len(session.results.discovered_rules),
        "converted_rules": len(session.results.converted_rules),
        "packages": sorted(
            {rule.package_key for rule in session.results.converted_rules if rule.package_key}
        ),
        "errors": session.errors,
    }


async def _discover(parsed: argparse.Namespace) -> DiscoverySession:
    overrides = {
        "max_concurrency": parsed.max_concurrency,
        "min_confidence": parsed.min_confidence,
        "inference_enabled": False if parsed.no_inference else None,
        "cache_enabled": False if parsed.no_cache else None,
    }
    async with DiscoveryService() as service:
        return await service.run_discovery(parsed.path, overrides)


def main(args: list[str] | None = None) -> int:
    """Run the depscout CLI.

    Args:
        args: Command-line arguments. If None, uses sys.argv[1:].

    Returns:
        Exit code (0 for success).
    """
    parsed = _build_parser().parse_args(args)
    configure_logging()

    if parsed.command == "discover":
        try:
            session = asyncio.run(_discover(parsed))
        except ConfigError as e:
            print(f"Invalid configuration: {e}", file=sys.stderr)
            return 2
        print(json.dumps(summarize(session), indent=2))
        return 0 if session.status == SessionStatus.COMPLETED else 1

    host = getattr(parsed, "host", "127.0.0.1")
    port = getattr(parsed, "port", 8000)
    print(f"Starting depscout server at http://{host}:{port}")
    print("Press Ctrl+C to stop")

    uvicorn.run(
        "depscout.server.app:app",
        host=host,
        port=port,
        reload=getattr(parsed, "reload", False),
    )

    return 0


if __name__ == "__main__":
    sys.exit(main())
