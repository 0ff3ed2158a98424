# OpenSmartCity: poll SensorThings weather stations and publish typed state
# Copyright (C) 2025 Ruaraidh Dobson, South London Scientific

# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU General Public License for more details.

# You should have received a copy of the GNU General Public License
# along with this program.  If not, see <https://www.gnu.org/licenses/>.

"""
Command line entry point.

    opensmartcity-weather --location 51.17,7.08 --base-url https://... --once

Settings not given on the command line are read from OPENSMARTCITY_*
environment variables, after loading a .env file from the working directory.
"""

import argparse
import logging
from dataclasses import replace

from dotenv import load_dotenv

from . import __version__
from .config import (
    BridgeConfig,
    load_bridge_config,
    load_weather_config,
    parse_measurements,
)
from .errors import ConfigurationError
from .handler import Bridge, WeatherHandler
from .state import LoggingStateSink
from .types import ConfigFailure, Success

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="opensmartcity-weather",
        description="Publish temperature and humidity from the nearest "
        "online SensorThings station.",
    )
    parser.add_argument("--location", help="Reference location as 'lat,lon'")
    parser.add_argument("--base-url", help="SensorThings service root URL")
    parser.add_argument(
        "--interval", type=int, help="Seconds between polls (fixed delay)"
    )
    parser.add_argument("--timeout", type=float, help="Request timeout in seconds")
    parser.add_argument(
        "--station-name", help="Location name for the static station filter"
    )
    parser.add_argument(
        "--nearest",
        action="store_true",
        help="Query the nearest online station instead of the named one",
    )
    parser.add_argument(
        "--measurements", help="Comma-separated names, e.g. TEMPERATURE,HUMIDITY"
    )
    parser.add_argument(
        "--once", action="store_true", help="Run a single cycle and exit"
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    parser.add_argument("--version", action="version", version=__version__)
    return parser


def _bridge_config(args: argparse.Namespace) -> BridgeConfig:
    if args.base_url:
        config = BridgeConfig(base_url=args.base_url)
        try:
            env = load_bridge_config()
        except ConfigurationError:
            env = None
        if env is not None:
            config = replace(env, base_url=args.base_url)
    else:
        config = load_bridge_config()

    overrides = {}
    if args.interval is not None:
        overrides["refresh_interval"] = args.interval
    if args.timeout is not None:
        overrides["timeout"] = args.timeout
    return replace(config, **overrides) if overrides else config


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    load_dotenv()

    try:
        bridge_config = _bridge_config(args)
        config = load_weather_config()
        if args.location:
            config = replace(config, location=args.location)
        if args.station_name:
            config = replace(config, station_name=args.station_name)
        if args.nearest:
            config = replace(config, use_nearest_station=True)
        if args.measurements:
            config = replace(config, measurements=parse_measurements(args.measurements))
    except ConfigurationError as e:
        logger.error(str(e))
        return 2

    bridge = Bridge(bridge_config)
    sink = LoggingStateSink()
    handler = WeatherHandler(bridge, config, sink)

    if args.once:
        if isinstance(handler.initialize(schedule=False), ConfigFailure):
            bridge.close()
            return 2
        result = handler.refresh()
        handler.dispose()
        bridge.close()
        return 0 if isinstance(result, Success) else 1

    if isinstance(handler.initialize(), ConfigFailure):
        bridge.close()
        return 2

    try:
        while handler.refresh_job is not None and not handler.refresh_job.cancelled:
            handler.refresh_job.join(timeout=1.0)
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
    finally:
        handler.dispose()
        bridge.close()
    return 0

