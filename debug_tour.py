import argparse
import asyncio

from audiotour.core.config import settings
from audiotour.logging import configure_logging
from audiotour.models.domain import NoResult
from audiotour.services.pipeline import TourPipeline

# Colosseum, Rome
DEFAULT_LAT = 41.8902
DEFAULT_LNG = 12.4922

# Sources a listener actually gets to see.
SURFACED_SOURCES = 3

async def run_tour(lat: float, lng: float, radius: int, heuristic: bool):
    kwargs = {"scorer": None} if heuristic else {}
    pipeline = TourPipeline.from_settings(settings, **kwargs)

    print(f"--- Tour at {lat}, {lng} (radius {radius} m) ---")
    outcome = await pipeline.run({"lat": lat, "lng": lng}, radius_m=radius)

    if isinstance(outcome, NoResult):
        print(f"No result: {outcome.reason}")
    else:
        if outcome.landmark:
            print(f"Landmark:  {outcome.landmark.name} ({outcome.landmark.category}, {outcome.landmark.distance:.0f} m)")
            print(f"Score:     {outcome.score}")
        else:
            print(f"Area:      {outcome.area_name}")
        print(f"Generated: {outcome.used_generative_path}")
        print(f"\n{outcome.narrative}\n")
        for source in outcome.sources[:SURFACED_SOURCES]:
            print(f"  - {source.title}: {source.url}")

    print("\n--- Stages ---")
    for timing in outcome.stages:
        print(f"{timing.stage.value:<14} {timing.elapsed_ms:>9.2f} ms")

if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Run one tour request against the live providers.")
    parser.add_argument("--lat", type=float, default=DEFAULT_LAT)
    parser.add_argument("--lng", type=float, default=DEFAULT_LNG)
    parser.add_argument("--radius", type=int, default=settings.SEARCH_RADIUS_M)
    parser.add_argument("--heuristic", action="store_true", help="skip significance scoring")
    args = parser.parse_args()

    configure_logging()
    asyncio.run(run_tour(args.lat, args.lng, args.radius, args.heuristic))
