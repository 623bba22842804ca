"""Opaque result ids: ``<kind>:<base64url(canonical json)>``."""

from __future__ import annotations

import base64
import binascii
import json
from dataclasses import dataclass
from typing import Any

from influence_mcp.errors import DecodingError

SEPARATOR = ":"


@dataclass(slots=True, frozen=True)
class DecodedResultId:
    kind: str
    payload: Any


def encode_result_id(kind: str, payload: Any) -> str:
    if not kind or SEPARATOR in kind:
        raise ValueError(f"result kind must be non-empty and free of {SEPARATOR!r}: {kind!r}")
    raw = json.dumps(
        payload,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
    ).encode("utf-8")
    token = base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")
    return f"{kind}{SEPARATOR}{token}"


def decode_result_id(result_id: str) -> DecodedResultId:
    kind, sep, token = result_id.partition(SEPARATOR)
    if not sep:
        raise DecodingError("Invalid result id: missing kind separator")
    if not kind:
        raise DecodingError("Invalid result id: empty kind")

    padded = token + "=" * (-len(token) % 4)
    try:
        raw = base64.b64decode(padded, altchars=b"-_", validate=True)
        payload = json.loads(raw.decode("utf-8"))
    except (binascii.Error, ValueError) as exc:
        # UnicodeDecodeError and JSONDecodeError are ValueError subclasses.
        raise DecodingError(f"Invalid result id: {exc.__class__.__name__}") from exc
    return DecodedResultId(kind=kind, payload=payload)
