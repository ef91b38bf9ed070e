"""
Route Profiles - CLI.

============================================================
RESPONSIBILITY
============================================================
Command-line interface for operating the route profile store.

- Creates the schema
- Generates routes into a profile (or the scope default)
- Lists profiles and routes
- Prints a consumer's resolved routes as JSON

============================================================
USAGE
============================================================
python -m route_profiles init-db
python -m route_profiles generate --channels 12
python -m route_profiles profiles --scope global
python -m route_profiles routes <profile_id>
python -m route_profiles resolve event-42 --mode fork_profile --profile <profile_id>

============================================================
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import List, Optional

from storage.database import Database

from .config import CHANNEL_PRESETS, RouteEngineConfig, load_config, setup_logging
from .errors import RouteEngineError
from .service import RouteProfileService
from .types import RouteMode


logger = logging.getLogger(__name__)


# ============================================================
# CLI ARGUMENT PARSER
# ============================================================

def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="route-profiles",
        description="Layered route configuration store",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Channel presets: {", ".join(str(n) for n in CHANNEL_PRESETS)}

Examples:
  %(prog)s init-db
  %(prog)s generate --channels 16
  %(prog)s resolve event-42 --mode use_default
        """
    )

    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
        help="Logging level (default: ROUTE_ENGINE_LOG_LEVEL or INFO)",
    )
    parser.add_argument(
        "--scope",
        type=str,
        default=None,
        help="Profile scope (default: ROUTE_ENGINE_DEFAULT_SCOPE or global)",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("init-db", help="Create the database tables")

    generate = commands.add_parser("generate", help="Generate canonical routes")
    generate.add_argument(
        "--channels", "-n",
        type=int,
        required=True,
        metavar="N",
        help="Number of channels",
    )
    generate.add_argument(
        "--profile",
        type=str,
        default=None,
        help="Target profile id (default: scope default, created if missing)",
    )

    commands.add_parser("profiles", help="List profiles")

    routes = commands.add_parser("routes", help="List the routes of a profile")
    routes.add_argument("profile_id", type=str)

    resolve = commands.add_parser("resolve", help="Print a consumer's resolved routes")
    resolve.add_argument("consumer_id", type=str)
    resolve.add_argument(
        "--mode",
        type=str,
        choices=[m.value for m in RouteMode],
        default=RouteMode.USE_DEFAULT.value,
        help="Route mode (default: use_default)",
    )
    resolve.add_argument("--profile", type=str, default=None, help="Source profile id")

    return parser


# ============================================================
# COMMANDS
# ============================================================

async def run_command(args: argparse.Namespace, config: RouteEngineConfig) -> int:
    """
    Run one command against a fresh database handle.

    Returns:
        Exit code
    """
    database = Database(config.database)
    service = RouteProfileService(database, config)
    try:
        if args.command == "init-db":
            await database.create_all()
            print(f"Tables created in {config.database.safe_url()}")

        elif args.command == "generate":
            if args.profile:
                routes = await service.generate_routes(args.profile, args.channels)
                profile_id = args.profile
            else:
                profile_id = await service.ensure_default_profile(args.channels, args.scope)
                routes = service.state.routes
            print(f"Generated {len(routes)} routes into profile {profile_id}")

        elif args.command == "profiles":
            for profile in await service.list_profiles(args.scope):
                marker = "*" if profile.is_default else " "
                print(f"{marker} {profile.profile_id}  {profile.scope:12s} {profile.name}")

        elif args.command == "routes":
            for route in await service.list_routes(args.profile_id):
                print(
                    f"{route.ordinal:3d}  {route.encoder_input_label:4s} "
                    f"{route.outbound_label:8s} {route.destination_label:12s} {route.status.value}"
                )

        elif args.command == "resolve":
            resolved = await service.resolve_for_consumer(
                args.consumer_id, args.mode, args.profile, args.scope
            )
            print(json.dumps([r.to_dict() for r in resolved], indent=2, default=str))

        return 0

    except RouteEngineError as e:
        logger.error(f"{type(e).__name__}: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 2 if e.retryable else 1
    finally:
        await database.disconnect()


# ============================================================
# MAIN ENTRY POINT
# ============================================================

def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Args:
        argv: Command line arguments (default: sys.argv[1:])

    Returns:
        Exit code
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    setup_logging(args.log_level)

    try:
        config = load_config()
    except RouteEngineError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    try:
        return asyncio.run(run_command(args, config))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130


if __name__ == "__main__":
    sys.exit(main())
