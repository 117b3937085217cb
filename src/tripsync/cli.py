"""
Command-line entry point for TripSync.

Usage:
    tripsync --status                      # Connectivity and pending changes
    tripsync --sync                        # Replay queued changes now
    tripsync --geocode "Louvre" --context Paris
    tripsync --weather 48.85 2.35 --start 2026-11-01 --end 2026-11-05
    tripsync --check-config                # Validate configuration
"""

from __future__ import annotations

import argparse
import asyncio
import json
from typing import List, Optional

from .app import TripSyncApp
from .core.config import get_config, get_env_settings
from .core.errors import TripSyncError, user_message
from .core.logger import setup_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="TripSync - offline sync for trip itineraries")
    parser.add_argument("--config", type=str, help="Path to configuration file")
    parser.add_argument("--check-config", action="store_true", help="Validate configuration and exit")
    parser.add_argument("--status", action="store_true", help="Show sync status")
    parser.add_argument("--sync", action="store_true", help="Replay pending changes now")
    parser.add_argument("--geocode", type=str, metavar="PLACE", help="Look up coordinates for a place")
    parser.add_argument("--context", type=str, default="", help="Destination context for --geocode")
    parser.add_argument("--weather", type=float, nargs=2, metavar=("LAT", "LNG"), help="Fetch weather")
    parser.add_argument("--start", type=str, help="Start date for --weather (YYYY-MM-DD)")
    parser.add_argument("--end", type=str, help="End date for --weather (YYYY-MM-DD)")
    return parser


def check_config(config_path: Optional[str]) -> int:
    config = get_config(config_path)
    env = get_env_settings()

    print(json.dumps(config.model_dump(), indent=2))
    if env.supabase_configured:
        print("✓ Supabase configured")
    else:
        print("✗ Supabase not configured (SUPABASE_URL / SUPABASE_KEY)")
    return 0


async def run_command(args: argparse.Namespace, app: TripSyncApp) -> int:
    if args.status:
        status = app.require_changes().get_status()
        print(json.dumps(status.to_dict(), indent=2))
        return 0

    if args.sync:
        report = await app.require_changes().force_sync()
        print(json.dumps(report.to_dict(), indent=2))
        return 0 if report.success or report.attempted == 0 else 1

    if args.geocode:
        coords = await app.lookups.geocode(args.geocode, args.context)
        if coords is None:
            print(f"No location found for '{args.geocode}'")
            return 1
        print(json.dumps(coords.to_dict()))
        return 0

    if args.weather:
        lat, lng = args.weather
        weather = await app.lookups.fetch_weather(lat, lng, args.start, args.end)
        print(json.dumps(weather.to_dict(), indent=2))
        return 0

    return 2


async def _run(args: argparse.Namespace) -> int:
    app = TripSyncApp(config=get_config(args.config))
    async with app:
        try:
            return await run_command(args, app)
        except TripSyncError as e:
            print(f"✗ {user_message(e)}")
            return 1


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.check_config:
        return check_config(args.config)

    if not (args.status or args.sync or args.geocode or args.weather):
        parser.print_help()
        return 2

    setup_logging(get_config(args.config))
    return asyncio.run(_run(args))
