"""Decoding of newsletter sources into canonical Unicode text.

Word saves some exports as UTF-16 ("Unicode"). When such a file is read as an
8-bit text stream every other code unit is NUL, so the low bytes of the code
units are the UTF-16LE octets of the real text.
"""
from __future__ import annotations

import codecs
from typing import Union

from charset_normalizer import from_bytes

from common.config import yaml_config
from common.logger import get_logger

log = get_logger(__name__)

_BOM = "\ufeff"


def decode_possibly_utf16(raw: str) -> str:
    """Rebuild text that is really UTF-16LE but was read one byte per character."""
    if not raw:
        return raw
    if "\x00" not in raw:
        return raw[1:] if raw.startswith(_BOM) else raw
    try:
        octets = bytes(ord(ch) & 0xFF for ch in raw)
        decoded = octets.decode("utf-16-le")
    except UnicodeDecodeError:
        log.debug("UTF-16 reconstruction failed; stripping NULs instead")
        return raw.replace("\x00", "")
    return decoded[1:] if decoded.startswith(_BOM) else decoded


def decode_bytes(data: bytes) -> str:
    """Decode a byte buffer, honouring BOMs and the NUL-density heuristic.

    Buffers that are not valid UTF-8 (legacy Windows code page exports) go
    through charset detection before falling back to UTF-8 with replacement.
    """
    if not data:
        return ""
    if data.startswith(codecs.BOM_UTF16_LE):
        return data[2:].decode("utf-16-le", errors="replace")
    if data.startswith(codecs.BOM_UTF16_BE):
        return data[2:].decode("utf-16-be", errors="replace")

    probe = data[: yaml_config.encoding.probe_bytes]
    if probe.count(0) > yaml_config.encoding.min_zero_bytes:
        try:
            return data.decode("utf-16-le")
        except UnicodeDecodeError:
            log.debug("Buffer looked like UTF-16LE but did not decode; using UTF-8")
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError:
        log.debug("Buffer is not UTF-8; detecting its charset")

    try:
        best = from_bytes(data).best()
    except Exception:
        log.warning("Charset detection failed", exc_info=True)
        best = None
    if best is not None:
        log.debug("Detected %s for non-UTF-8 buffer", best.encoding)
        return str(best)
    return data.decode("utf-8", errors="replace")


def normalize(raw: Union[str, bytes, None]) -> str:
    """Return canonical Unicode text for a raw document source. Never raises."""
    if raw is None:
        return ""
    if isinstance(raw, (bytes, bytearray)):
        return decode_bytes(bytes(raw))
    return decode_possibly_utf16(str(raw))
