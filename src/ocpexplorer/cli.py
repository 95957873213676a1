"""OCP Explorer CLI — search and coordinate lookup commands."""

import asyncio
import logging
import sys

from ocpexplorer.config import settings
from ocpexplorer.observability.tracing import init_tracing
from ocpexplorer.services import build_services


def _setup() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    init_tracing(settings)


def main() -> None:
    """Search the OCP: ocp-search [--local | --ai] <query>"""
    _setup()

    args = sys.argv[1:]
    mode = "auto"
    if args and args[0] in ("--local", "--ai"):
        mode = args.pop(0).lstrip("-")

    if not args:
        print("Usage: ocp-search [--local | --ai] <query>")
        print('  Example: ocp-search "mixed use over 10 storeys"')
        print("  Example: ocp-search --local residential")
        sys.exit(1)

    query = " ".join(args)
    asyncio.run(_search(query, mode))


async def _search(query: str, mode: str) -> None:
    services = build_services(settings)
    await services.initialize()

    print("\nOCP Explorer Search")
    print(f"{'=' * 50}")
    print(f"Query: {query}  (mode: {mode})\n")

    result = await services.orchestrator.search(query, mode=mode)

    if result.method in ("error", "not-ready", "none"):
        print(f"Search failed: {result.error}")
        if result.suggestion:
            print(f"  {result.suggestion}")
        return

    label = result.method
    if result.fallback:
        label += f" (AI unavailable: {result.ai_error})"
    print(f"Method:  {label}")
    print(f"Results: {len(result.results)} of {result.total_found}")
    print()

    if result.ai_response:
        print("AI Answer:")
        print(f"  {result.ai_response}")
        if result.citations:
            print(f"  Citations: {', '.join(result.citations)}")
        print()

    for i, item in enumerate(result.results, 1):
        if item.type == "ai-answer":
            continue
        code = f"[{item.code}] " if item.code else ""
        print(f"{i:>2}. {code}{item.name}  ({item.type})")
        if item.description:
            print(f"      {item.description[:120]}")
        if item.match_reason:
            print(f"      {item.match_reason}")


def locate_main() -> None:
    """Look up a coordinate: ocp-locate <lat> <lng>"""
    _setup()

    if len(sys.argv) != 3:
        print("Usage: ocp-locate <lat> <lng>")
        print("  Example: ocp-locate 49.2057 -122.9110")
        sys.exit(1)

    try:
        lat, lng = float(sys.argv[1]), float(sys.argv[2])
    except ValueError:
        print("Latitude and longitude must be numbers")
        sys.exit(1)

    asyncio.run(_locate(lat, lng))


async def _locate(lat: float, lng: float) -> None:
    services = build_services(settings)
    await services.initialize()
    info = services.resolver.resolve(lat, lng)

    print("\nOCP Location Lookup")
    print(f"{'=' * 50}")
    print(f"Coordinates: {lat}, {lng}")
    boundary = "inside" if info.within_boundary else "outside"
    if info.boundary_approximate:
        boundary += " (approximate, bounding box)"
    print(f"Boundary:    {boundary} New Westminster\n")

    if not info.within_boundary:
        print("No OCP designation applies outside the city boundary.")
        return

    if info.land_use:
        print(f"Land Use:    {info.land_use.code} — {info.land_use.name}")
        if info.land_use.max_height:
            print(f"  Max Height:  {info.land_use.max_height}")
        if info.land_use.max_density:
            print(f"  Max Density: {info.land_use.max_density}")
    if info.zoning:
        print(f"Zoning:      {info.zoning.code} — {info.zoning.name}")
        if info.zoning.max_height:
            print(f"  Max Height:  {info.zoning.max_height}")
        if info.zoning.max_far:
            print(f"  Max FAR:     {info.zoning.max_far}")
    if info.policies:
        print()
        print("Relevant Policies:")
        for policy in info.policies:
            print(f"  {policy.path}  {policy.title}")
