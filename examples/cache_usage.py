"""Example demonstrating CacheStore and clone usage.

This clones a template twice. The second clone reuses the cached commit
hash and archive, so it makes no network requests.
"""

import asyncio
import tempfile
from pathlib import Path

from repo_scaffold import CacheStore, CloneOptions, create_clone, parse


async def main():
    """Clone a template, then list what the cache remembers."""
    cache_dir = Path.home() / ".cache" / "repo-scaffold"
    store = CacheStore(cache_dir)

    specifier = "Rich-Harris/degit-test-repo#master"
    print(f"Cached hash before clone: {store.lookup_hash(parse(specifier))}")

    with tempfile.TemporaryDirectory() as workdir:
        for attempt in ("first", "second"):
            dest = Path(workdir) / attempt
            cloner = create_clone(
                specifier,
                CloneOptions(cache=attempt == "second", verbose=True),
                cache_store=store,
            )
            cloner.on("info", lambda event: print(f"  [{event.code}] {event.message}"))
            cloner.on("warn", lambda event: print(f"  ! {event.message}"))

            print(f"{attempt} clone:")
            await cloner.clone(dest)
            print(f"  files: {sorted(p.name for p in dest.iterdir())}")

    print("\nRecently used references:")
    for reference, millis in store.enumerate_access():
        print(f"  {reference.specifier} (last used at {millis} ms)")


if __name__ == "__main__":
    asyncio.run(main())
