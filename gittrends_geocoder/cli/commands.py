"""argparse front end: ``serve`` and ``search`` subcommands.

Both commands build :class:`Settings` from the environment first and then
apply whichever flags were given on top, so ``--osm-email`` beats
``OSM_EMAIL``.  Log lines go to stderr for ``search`` so its stdout can be
piped (``search ... --json | jq``).
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Any, TextIO

import uvicorn

from gittrends_geocoder import __version__
from gittrends_geocoder.config.loader import load_config
from gittrends_geocoder.config.settings import Settings
from gittrends_geocoder.main import build_geocoder, build_http_client, close_geocoder, create_app
from gittrends_geocoder.models.address import Address
from gittrends_geocoder.utils.errors import ConfigurationError, GeocoderError
from gittrends_geocoder.utils.logging import configure_logging, get_logger
from gittrends_geocoder.utils.query import normalize_query

_logger = get_logger(__name__)

# argparse destination -> Settings field
_SETTINGS_FLAGS: dict[str, str] = {
    "host": "app_host",
    "port": "app_port",
    "cache_dir": "cache_dir",
    "cache_size": "cache_size",
    "osm_server": "osm_server",
    "osm_email": "osm_email",
    "osm_agent": "osm_user_agent",
}


def settings_from_args(args: argparse.Namespace, base: Settings | None = None) -> Settings:
    """Overlay the flags present in *args* on top of *base* (or the environment)."""
    settings = base or Settings()
    overrides = {
        field: getattr(args, dest)
        for dest, field in _SETTINGS_FLAGS.items()
        if getattr(args, dest, None) is not None
    }
    return settings.model_copy(update=overrides) if overrides else settings


def _add_pipeline_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--cache-dir", default=None, help="Directory of the durable cache (CACHE_DIR)")
    parser.add_argument(
        "--cache-size",
        type=int,
        default=None,
        help="Entries kept in memory, 0 disables caching (CACHE_SIZE)",
    )
    parser.add_argument("--osm-server", default=None, help="Nominatim server URL (OSM_SERVER)")
    parser.add_argument("--osm-email", default=None, help="Contact e-mail sent to Nominatim (OSM_EMAIL)")
    parser.add_argument("--osm-agent", default=None, help="User-Agent sent to Nominatim (OSM_USER_AGENT)")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m gittrends_geocoder.cli",
        description="Geocode free-form locations through cached, throttled providers.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    sub = parser.add_subparsers(dest="command")

    serve_parser = sub.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", default=None, help="Bind address (APP_HOST)")
    serve_parser.add_argument("--port", type=int, default=None, help="Bind port (APP_PORT)")
    _add_pipeline_options(serve_parser)

    search_parser = sub.add_parser("search", help="Geocode queries and print the results")
    search_parser.add_argument("queries", nargs="+", metavar="QUERY", help="Location to geocode")
    search_parser.add_argument("--json", action="store_true", help="Print results as JSON")
    _add_pipeline_options(search_parser)

    return parser


# ---------------------------------------------------------------------------
# search
# ---------------------------------------------------------------------------


async def run_search(
    queries: list[str],
    settings: Settings,
    config: dict[str, Any],
) -> list[tuple[str, Address | None, str | None]]:
    """Resolve *queries* concurrently through one pipeline.

    Returns one ``(query, address, error)`` triple per query, in input order.
    Invalid queries and failed lookups carry an error message instead of
    aborting the batch.
    """

    async def _one(raw: str) -> tuple[str, Address | None, str | None]:
        try:
            return raw, await geocoder.search(normalize_query(raw, field="query")), None
        except GeocoderError as exc:
            _logger.warning("search_failed", query=raw, error_type=type(exc).__name__)
            return raw, None, exc.message

    async with build_http_client(settings) as http_client:
        geocoder = build_geocoder(settings, config, http_client)
        try:
            return list(await asyncio.gather(*(_one(q) for q in queries)))
        finally:
            await close_geocoder(geocoder)


def print_results(
    results: list[tuple[str, Address | None, str | None]],
    as_json: bool = False,
    out: TextIO | None = None,
) -> None:
    out = out or sys.stdout
    if as_json:
        payload = [
            {
                "query": query,
                "address": address.model_dump(mode="json") if address else None,
                "error": error,
            }
            for query, address, error in results
        ]
        print(json.dumps(payload, indent=2, ensure_ascii=False), file=out)
        return

    for query, address, error in results:
        if error is not None:
            print(f"{query}\tERROR: {error}", file=out)
        elif address is None:
            print(f"{query}\tnot found", file=out)
        else:
            code = f" [{address.country_code}]" if address.country_code else ""
            print(f"{query}\t{address.name}{code} ({address.provider or 'unknown'})", file=out)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> int:
    """Parse *argv* and run the chosen command; returns the exit code."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    settings = settings_from_args(args)
    if "openstreetmap" in settings.get_enabled_providers():
        try:
            settings.validate_osm()
        except ConfigurationError as exc:
            parser.error(exc.message)

    if args.command == "serve":
        uvicorn.run(
            create_app(settings=settings),
            host=settings.app_host,
            port=settings.app_port,
            log_config=None,
        )
        return 0

    configure_logging(log_level=settings.log_level, stream=sys.stderr)
    try:
        config = load_config(settings=settings)
        results = asyncio.run(run_search(args.queries, settings, config))
    except ConfigurationError as exc:
        print(f"Error: {exc.message}", file=sys.stderr)
        return 2
    except GeocoderError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    print_results(results, as_json=args.json)
    return 1 if any(error is not None for _, _, error in results) else 0


if __name__ == "__main__":
    sys.exit(main())
