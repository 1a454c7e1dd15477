#!/usr/bin/env python3
"""CLI script to resolve forest coordinates into the geocode cache."""
import argparse
import sys
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from tqdm import tqdm
from campfire.core.config import GEOCODE_CACHE_PATH, LOG_LEVEL, GeocoderConfig
from campfire.core.diagnostics import build_geocode_diagnostics
from campfire.core.geocode_cache import DuckDBKeyValueStore, GeocodeCache
from campfire.core.geocoder import ForestGeocoder
from campfire.utils.logging import setup_logging
from campfire.utils.timing import RunTimer


def read_forest_names(path: Path):
    """Read "forest name" or "forest name<TAB>directory name" lines."""
    entries = []
    for line in path.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        name, _, hint = line.partition("\t")
        entries.append((name.strip(), hint.strip() or None))
    return entries


def main():
    parser = argparse.ArgumentParser(description="Warm the forest geocode cache")
    parser.add_argument("file", type=Path, help="Text file with one forest name per line")
    parser.add_argument("--db-path", type=Path, default=GEOCODE_CACHE_PATH,
                       help="Geocode cache DuckDB path")
    parser.add_argument("--workers", type=int, default=4,
                       help="Concurrent forest lookups (default: 4)")
    parser.add_argument("--max-google-lookups", type=int, default=None,
                       help="Override MAX_GEOCODE_LOOKUPS_PER_RUN")
    parser.add_argument("--log-level", default=LOG_LEVEL, help="Log level")

    args = parser.parse_args()
    setup_logging(args.log_level)

    if not args.file.exists():
        print(f"Error: File not found: {args.file}", file=sys.stderr)
        sys.exit(1)

    entries = read_forest_names(args.file)
    print(f"Loaded {len(entries)} forest names")

    config = GeocoderConfig.from_env()
    if args.max_google_lookups is not None:
        config.max_new_lookups_per_run = args.max_google_lookups

    cache = GeocodeCache(DuckDBKeyValueStore(args.db_path))
    geocoder = ForestGeocoder(cache, config=config)
    geocoder.reset_budget()

    unresolved = []
    with RunTimer("warm_geocode_cache") as timer:
        with ThreadPoolExecutor(max_workers=max(1, args.workers)) as executor:
            futures = {
                executor.submit(geocoder.resolve_forest_coordinates, name, hint): name
                for name, hint in entries
            }
            for future in tqdm(as_completed(futures), total=len(futures), desc="Resolving"):
                name = futures[future]
                result = future.result()
                timer.record(result.resolved)
                if not result.resolved:
                    unresolved.append((name, build_geocode_diagnostics(result)))

    stats = cache.stats()
    print(f"✅ Resolved {len(entries) - len(unresolved)}/{len(entries)} forests "
          f"({stats['total']} cache entries)")

    for name, diagnostics in sorted(unresolved, key=lambda item: item[0]):
        print(f"\n❌ {name}: {diagnostics.reason}")
        for line in diagnostics.debug:
            print(f"    {line}")

    cache.close()


if __name__ == "__main__":
    main()
