#!/usr/bin/env python
"""Download an article's revision series to a JSON file.

Run from the project root::

    python scripts/download_revisions.py "Earth" --limit 5000

Fetches the newest ``--limit`` revisions (optionally within a date window),
then follows the older-history cursor ``--older-pages`` times, merging each
batch.  The result is written as the same JSON the ``/api/revisions``
endpoint returns.  Upstream pages go through the shared response cache, so
repeated runs within the cache TTL do not hit Wikimedia again.

Usage::

    python scripts/download_revisions.py TITLE [--limit N] [--from YYYY-MM-DD]
        [--to YYYY-MM-DD] [--older-pages K] [--output PATH]

Options:
    --limit        Revisions per batch (default 5000).
    --from, --to   Inclusive UTC day bounds.
    --older-pages  Further batches to fetch by following the cursor (default 0).
    --output       Output file (default ``data/raw/<title>.json``).

Exit codes:
    0: Success.
    1: Invalid arguments or an upstream failure.
"""

from __future__ import annotations

import argparse
import asyncio
import os
import sys
from datetime import date
from pathlib import Path
from typing import Optional

# Ensure the src layout is on sys.path when run as a standalone script.
_SCRIPT_DIR = os.path.dirname(os.path.abspath(__file__))
_SRC_DIR = os.path.join(os.path.dirname(_SCRIPT_DIR), "src")
if _SRC_DIR not in sys.path:
    sys.path.insert(0, _SRC_DIR)


async def _run(
    title: str,
    limit: int,
    date_from: Optional[date],
    date_to: Optional[date],
    older_pages: int,
    output: Path,
) -> None:
    """Fetch the series and write it to *output*.

    Raises:
        SystemExit: With code 1 on any WikiStats error.
    """
    from wikistats.api.dependencies import get_response_cache  # noqa: PLC0415
    from wikistats.config.settings import get_settings  # noqa: PLC0415
    from wikistats.core.exceptions import WikiStatsError  # noqa: PLC0415
    from wikistats.revisions.client import WikipediaClient  # noqa: PLC0415
    from wikistats.revisions.engine import RevisionFetcher  # noqa: PLC0415
    from wikistats.revisions.merge import fetch_with_older_pages  # noqa: PLC0415

    try:
        async with WikipediaClient(settings=get_settings()) as client:
            fetcher = RevisionFetcher(client, get_response_cache())
            series = await fetch_with_older_pages(
                fetcher,
                title,
                limit,
                date_from=date_from,
                date_to=date_to,
                older_pages=older_pages,
            )
    except WikiStatsError as exc:
        print(f"[download_revisions] ERROR: {exc}", file=sys.stderr)
        sys.exit(1)

    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(series.model_dump_json(by_alias=True, indent=2), encoding="utf-8")
    print(f'[download_revisions] Wrote {len(series.points)} points for "{title}" to {output.resolve()}')


def _parse_args() -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Download a Wikipedia article's revision series as JSON.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("title", help="Article title, e.g. 'Earth'.")
    parser.add_argument("--limit", type=int, default=5000, help="Revisions per batch (default 5000).")
    parser.add_argument(
        "--from",
        dest="date_from",
        type=date.fromisoformat,
        default=None,
        help="First UTC day to include (YYYY-MM-DD).",
    )
    parser.add_argument(
        "--to",
        dest="date_to",
        type=date.fromisoformat,
        default=None,
        help="Last UTC day to include (YYYY-MM-DD).",
    )
    parser.add_argument(
        "--older-pages",
        type=int,
        default=0,
        help="Further batches to fetch by following the older-history cursor.",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Output path (default data/raw/<title>.json).",
    )
    return parser.parse_args()


def main() -> None:
    """Entry point for the revision download script."""
    args = _parse_args()

    from wikistats.config.settings import get_settings  # noqa: PLC0415
    from wikistats.core.logging_config import configure_logging  # noqa: PLC0415

    settings = get_settings()
    configure_logging(settings.log_level, settings.log_format)
    output = args.output or Path("data") / "raw" / f"{args.title}.json"
    asyncio.run(
        _run(
            title=args.title,
            limit=args.limit,
            date_from=args.date_from,
            date_to=args.date_to,
            older_pages=max(0, args.older_pages),
            output=output,
        )
    )


if __name__ == "__main__":
    main()
