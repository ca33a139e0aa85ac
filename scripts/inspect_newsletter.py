import argparse
from pathlib import Path

from ingestion.encoding import decode_bytes
from ingestion.ingest_pipeline import build_record
from ingestion.text_index import find_loose_matches


def main():
    parser = argparse.ArgumentParser(description="Print what the pipeline extracts from one newsletter.")
    parser.add_argument("path", type=str)
    parser.add_argument("--query", type=str, default="")
    args = parser.parse_args()

    path = Path(args.path)
    html = decode_bytes(path.read_bytes())
    record = build_record(path.name, html)

    print(f"Title:   {record.title}")
    print(f"Date:    {record.date}")
    print(f"Excerpt: {record.excerpt}")
    print("Sections:")
    for s in record.sections:
        print(f"  {'  ' * (s.level - 1)}#{s.id}  {s.title}  ({len(s.text)} chars)")

    if args.query:
        print(f"Matches for {args.query!r}:")
        for m in find_loose_matches(html, args.query):
            print(f"  [{m.title}] {m.text[:120]}")


if __name__ == "__main__":
    main()
