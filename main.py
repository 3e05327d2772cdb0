"""AD/CVD Tracker

Simple CLI for looking up the latest AD/CVD notices for an HTS code.
"""

import argparse
import asyncio
import json
import sys
from datetime import datetime, timezone

from adcvd_tracker.api.deps import get_result_cache
from adcvd_tracker.services.errors import InvalidRequestError, UpstreamError
from adcvd_tracker.services.pipeline import NoticePipeline, PipelineOptions
from adcvd_tracker.tools.dataweb import DatawebClient
from adcvd_tracker.tools.federal_register import FederalRegisterClient


def build_options(args: argparse.Namespace) -> PipelineOptions:
    overrides = {
        "fetch_cap": args.fetch_cap,
        "per_entity_minimum": args.per_country_min,
        "chunk_size": args.chunk_size,
    }
    overrides = {k: v for k, v in overrides.items() if v is not None}
    if args.mode == "tracker":
        return PipelineOptions.tracker_defaults(**overrides)
    return PipelineOptions.verifier_defaults(**overrides)


def print_summary(payload: dict) -> None:
    countries = payload.get("countries")
    if countries is None:
        countries = payload.get("output", {}).get("countries", [])

    print(f"Countries: {len(countries)}")
    print("-" * 50)
    for entry in countries:
        latest = entry.get("latest") or {}
        if entry.get("hasCase"):
            print(f"[+] {entry['country']}: {latest.get('title', '')[:80]}")
            print(f"     {latest.get('date')} | {latest.get('url')} | score={entry.get('score')}")
        else:
            print(f"[-] {entry['country']}: no matching notice")

    links = payload.get("idsLinks") or payload.get("output", {}).get("idsLinks", [])
    if links:
        print(f"\nIDS case links ({len(links)}):")
        for link in links:
            print(f"  {link['url']}")


async def run_lookup(args: argparse.Namespace) -> int:
    pipeline = NoticePipeline(FederalRegisterClient(), DatawebClient(), get_result_cache())
    try:
        result = await pipeline.run(args.hts_code, args.year, build_options(args))
    except (InvalidRequestError, UpstreamError) as exc:
        print(f"[!] Error: {exc}", file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps(result.payload, indent=2))
    else:
        print(f"HTS {args.hts_code} / {args.year} ({args.mode})")
        print_summary(result.payload)
    return 0


def main():
    parser = argparse.ArgumentParser(description="AD/CVD notice tracker")
    parser.add_argument("--hts-code", required=True, help="HTS8 code to look up")
    parser.add_argument("--year", default=str(datetime.now(timezone.utc).year), help="Tariff year")
    parser.add_argument("--mode", choices=("tracker", "verifier"), default="tracker")
    parser.add_argument("--fetch-cap", type=int, help="Total search calls across countries")
    parser.add_argument("--per-country-min", type=int, help="Minimum search calls per country")
    parser.add_argument("--chunk-size", type=int, help="Expressions OR-ed into one search")
    parser.add_argument("--json", action="store_true", help="Print the raw JSON payload")

    args = parser.parse_args()

    sys.exit(asyncio.run(run_lookup(args)))


if __name__ == "__main__":
    main()
