"""
Byte/text helpers shared by fetch and replay.

Payloads travel to and from clients as standard base64; the UTF-8 view is a
best-effort projection gated by a control-character heuristic.
"""
from __future__ import annotations

import base64
import binascii
import logging
from typing import AbstractSet, Dict, Iterable, Mapping, Optional, Tuple

from dlq_explorer.core.exceptions import InvalidEncoding
from dlq_explorer.models.messages import MessageRecord

logger = logging.getLogger(__name__)

MAX_CONTROL_CHARS = 2


def _is_control(ch: str) -> bool:
    c = ord(ch)
    return c < 0x09 or 0x0D < c < 0x20


def try_decode_utf8(data: Optional[bytes]) -> Optional[str]:
    """Return *data* as text, or None when it looks binary.

    Malformed sequences are replaced rather than rejected; only the count of
    low control characters (TAB through CR are exempt) decides.
    """
    if data is None:
        return None
    text = bytes(data).decode("utf-8", errors="replace")
    ctrls = sum(1 for ch in text if _is_control(ch))
    return text if ctrls <= MAX_CONTROL_CHARS else None


def b64encode(data: Optional[bytes]) -> str:
    return base64.b64encode(data or b"").decode("ascii")


def b64decode(text: str, field: str) -> bytes:
    try:
        return base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InvalidEncoding(field, str(exc)) from exc


def encode_headers(raw_headers: Optional[Iterable[Tuple[str, Optional[bytes]]]]) -> Dict[str, str]:
    """Wire-ordered ``name -> base64``; a repeated name keeps its first slot, last value."""
    out: Dict[str, str] = {}
    for name, value in raw_headers or ():
        out[name] = b64encode(value)
    return out


def filter_and_decode(
    encoded: Optional[Mapping[str, str]], allow: AbstractSet[str]
) -> Dict[str, bytes]:
    """Decode only the headers named in *allow*.

    Raises
    ------
    InvalidEncoding
        If an allowed header is not valid base64. Disallowed entries are
        never decoded.
    """
    out: Dict[str, bytes] = {}
    if not encoded:
        logger.debug("filter_and_decode called with no headers -> returning empty")
        return out

    for name, value in encoded.items():
        if name in allow:
            out[name] = b64decode(value or "", f"headers.{name}")
    logger.debug(
        "filter_and_decode kept %d of %d headers (allow=%s)", len(out), len(encoded), sorted(allow)
    )
    return out


def decode_value(encoded: Optional[str]) -> Optional[bytes]:
    """Strict base64 decode; None is a valid null payload."""
    if encoded is None:
        return None
    return b64decode(encoded, "valueEncoded")


def to_message(rec) -> MessageRecord:
    """Build the client view of a kafka-python ``ConsumerRecord``."""
    return MessageRecord(
        topic=rec.topic,
        partition=rec.partition,
        offset=rec.offset,
        timestamp=rec.timestamp,
        key=rec.key,
        value=rec.value,
        keyText=try_decode_utf8(rec.key),
        valueText=try_decode_utf8(rec.value),
        valueEncoded=b64encode(rec.value) if rec.value is not None else None,
        headers=encode_headers(rec.headers),
    )
