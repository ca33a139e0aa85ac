import asyncio

import httpx
import orjson
import pytest

from ingestion.cli_build_index import main
from ingestion.ingest_pipeline import (
    base_name,
    build_catalog,
    build_record,
    build_search_index,
    ingest_folder,
)
from ingestion.loaders import DocumentResolver, FileSystemRepository, HttpRepository

NOVEMBER = (
    "<html><body><h2>AURIX Corner</h2>"
    "<p>Welcome to the November edition with plenty of product updates for everyone.</p>"
    "</body></html>"
)


def _write_corpus(folder):
    (folder / "2023-November-Newsletter.htm").write_bytes(NOVEMBER.encode("utf-16"))
    (folder / "notes.htm").write_text(
        "<html><body><p>Edition March 2022</p></body></html>", encoding="utf-8"
    )
    (folder / "misc.htm").write_text("<html><body></body></html>", encoding="utf-8")


def test_base_name():
    assert base_name("2023/ATV%20Newsletter%20May%202020.htm") == "ATV Newsletter May 2020"
    assert base_name("folder\\file.html") == "file"
    assert base_name("plain") == "plain"


def test_build_record_from_dated_file_name():
    record = build_record("2023-November-Newsletter.htm", NOVEMBER)
    assert record.id == record.slug == "2023-november-newsletter"
    assert (record.date.month_index, record.date.year) == (10, 2023)
    assert "November 2023" in record.title
    assert record.excerpt.startswith("Welcome to the November edition")
    assert [s.title for s in record.sections] == ["AURIX Corner"]
    assert "product updates" in record.text
    assert len(record.content_sha1) == 40


def test_build_record_without_date_or_content():
    record = build_record("misc.htm", "")
    assert record.date is None
    assert record.title == "misc"
    assert record.excerpt == "Imported HTML newsletter (misc)"
    assert record.sections == []


def test_ingest_folder_sorts_and_writes_manifest(tmp_path):
    corpus = tmp_path / "newsletters"
    corpus.mkdir()
    _write_corpus(corpus)
    manifest = tmp_path / "out" / "manifest.json"

    records = ingest_folder(input_dir=corpus, output=manifest)

    assert [r.id for r in records] == ["2023-november-newsletter", "notes", "misc"]
    assert "March 2022" in records[1].title
    assert records[2].date is None

    data = orjson.loads(manifest.read_bytes())
    assert [d["id"] for d in data] == ["2023-november-newsletter", "notes", "misc"]
    assert data[0]["month_index"] == 10
    assert data[0]["year"] == 2023
    assert data[0]["sections"] == [{"id": "aurix-corner", "title": "AURIX Corner", "level": 2}]
    assert data[2]["year"] is None

    index = build_search_index(records)
    assert index["notes"].identity == "notes.htm"
    assert "Edition March 2022" in index["notes"].text


def test_ingest_empty_folder(tmp_path):
    manifest = tmp_path / "manifest.json"
    assert ingest_folder(input_dir=tmp_path, output=manifest) == []
    assert orjson.loads(manifest.read_bytes()) == []


def test_cli_prints_catalog(tmp_path, capsys):
    _write_corpus(tmp_path)
    main(["--input_dir", str(tmp_path), "--output", str(tmp_path / "m.json")])
    out = capsys.readouterr().out
    lines = [line for line in out.splitlines() if "sections)" in line]
    assert len(lines) == 3
    assert lines[0].startswith("2023-11")
    assert lines[-1].startswith("undated")
    assert (tmp_path / "m.json").exists()


def test_cli_rejects_missing_folder(tmp_path):
    with pytest.raises(SystemExit):
        main(["--input_dir", str(tmp_path / "nope")])


def test_build_catalog_prefers_remote_mirror(tmp_path):
    (tmp_path / "fresh.htm").write_text("<p>Edition March 2022</p>", encoding="utf-8")
    (tmp_path / "offline.htm").write_text("<p>Edition March 2022</p>", encoding="utf-8")

    def handler(request):
        if request.url.path.endswith("fresh.htm"):
            return httpx.Response(200, content=b"<p>Edition May 2020</p>")
        return httpx.Response(503)

    async def run():
        local = FileSystemRepository(tmp_path)
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            repo = HttpRepository("https://mirror.example", local.identities(), fallback=local, client=client)
            return await build_catalog(DocumentResolver(repo))

    records = asyncio.run(run())
    assert [(r.id, r.date.month_index, r.date.year) for r in records] == [
        ("offline", 2, 2022),
        ("fresh", 4, 2020),
    ]
