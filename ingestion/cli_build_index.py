from __future__ import annotations

import argparse
from pathlib import Path

from common.config import yaml_config
from common.logger import get_logger
from ingestion.ingest_pipeline import ingest_folder

log = get_logger(__name__)


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Build the newsletter catalog manifest from exported .htm files."
    )
    parser.add_argument(
        "--input_dir",
        type=str,
        default="",
        help="Folder with .htm newsletters (defaults to app.data_dir from config.yaml)",
    )
    parser.add_argument(
        "--output",
        type=str,
        default="",
        help="Manifest path (defaults to <cache_dir>/manifest_newsletters.json)",
    )
    parser.add_argument(
        "--base_url",
        type=str,
        default="",
        help="Remote mirror to fetch newsletters from; local files are the fallback",
    )
    args = parser.parse_args(argv)

    input_dir = Path(args.input_dir) if args.input_dir else yaml_config.app.data_dir
    output = Path(args.output) if args.output else None

    if not input_dir.exists():
        log.error("Input directory does not exist: %s", input_dir)
        raise SystemExit(1)

    records = ingest_folder(input_dir=input_dir, output=output, base_url=args.base_url or None)
    for r in records:
        date = f"{r.date.year}-{r.date.month_index + 1:02d}" if r.date else "undated"
        print(f"{date}  {r.title}  ({len(r.sections)} sections)")


if __name__ == "__main__":
    main()
