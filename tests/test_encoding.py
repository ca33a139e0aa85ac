import codecs

import pytest

from ingestion.encoding import decode_bytes, decode_possibly_utf16, normalize


def _misread_utf16(text: str) -> str:
    """UTF-16LE bytes read back one byte per character, as a naive loader would."""
    return text.encode("utf-16-le").decode("latin-1")


def test_normalize_rebuilds_nul_interleaved_text():
    raw = _misread_utf16("Hello")
    assert "\x00" in raw
    assert normalize(raw) == "Hello"


def test_normalize_rebuilds_misread_text_with_bom():
    raw = _misread_utf16("\ufeff<p>Grüße</p>")
    assert normalize(raw) == "<p>Grüße</p>"


def test_normalize_leaves_plain_text_alone():
    assert normalize("<p>plain</p>") == "<p>plain</p>"
    assert normalize("\ufeff<p>plain</p>") == "<p>plain</p>"


def test_normalize_none_is_empty():
    assert normalize(None) == ""


def test_decode_failure_strips_nuls():
    # odd number of octets cannot be UTF-16
    assert decode_possibly_utf16("A\x00B") == "AB"


def test_decode_bytes_honours_boms():
    assert decode_bytes(codecs.BOM_UTF16_LE + "März".encode("utf-16-le")) == "März"
    assert decode_bytes(codecs.BOM_UTF16_BE + "März".encode("utf-16-be")) == "März"
    assert decode_bytes(codecs.BOM_UTF8 + "März".encode("utf-8")) == "März"


def test_decode_bytes_detects_utf16_without_bom():
    html = "<html><body><p>newsletter</p></body></html>" * 10
    assert decode_bytes(html.encode("utf-16-le")) == html


def test_decode_bytes_defaults_to_utf8():
    assert decode_bytes("Grüße".encode("utf-8")) == "Grüße"
    assert decode_bytes(b"") == ""


def test_normalize_accepts_bytes():
    assert normalize(codecs.BOM_UTF16_LE + "Hi".encode("utf-16-le")) == "Hi"


def test_decode_bytes_detects_legacy_windows_codepage():
    text = (
        "<html><body><p>Grüße aus dem Team – “AURIX Corner” "
        "bringt Neuigkeiten zu Steuergeräten, Förderprogrammen und Prüfständen.</p>"
        "</body></html>"
    ) * 5
    data = text.encode("cp1252")
    with pytest.raises(UnicodeDecodeError):
        data.decode("utf-8")

    decoded = decode_bytes(data)
    assert "\ufffd" not in decoded
    assert "Grüße" in decoded
    assert "“AURIX Corner”" in decoded
