"""Status record codec - bytes <-> DeploymentStatusRecord.

Some admission frameworks hand over secret data already decoded, others leave it
base64 wrapped (non-ASCII payloads are the usual culprit). The codec detects
which form it was given and re-applies the same form on the way out.
"""
import base64
import binascii
import json
import re
from dataclasses import dataclass

from pydantic import ValidationError

from deployhook.exceptions import RecordDecodeError
from deployhook.models.status import DeploymentStatusRecord

_BASE64_RE = re.compile(rb"^[A-Za-z0-9+/]*={0,2}$")
_WHITESPACE_RE = re.compile(rb"[\t\n\f\r ]+")


@dataclass(frozen=True)
class DecodedRecord:
    record: DeploymentStatusRecord
    was_binary_encoded: bool


def _normalize_base64(payload: bytes) -> bytes | None:
    """Strip ASCII whitespace and restore missing padding. None if it cannot be base64."""
    payload = _WHITESPACE_RE.sub(b"", payload)
    if not payload or not _BASE64_RE.match(payload):
        return None
    if len(payload) % 4 in (2, 3) and b"=" not in payload:
        payload += b"=" * (-len(payload) % 4)
    if len(payload) % 4:
        return None
    return payload


def looks_base64(payload: bytes) -> bool:
    """True if the payload is standard base64, allowing line breaks and missing padding."""
    return _normalize_base64(payload) is not None


def decode(payload: bytes) -> DecodedRecord:
    normalized = _normalize_base64(payload)
    was_binary_encoded = normalized is not None
    raw = payload
    if was_binary_encoded:
        try:
            raw = base64.b64decode(normalized, validate=True)
        except binascii.Error as e:
            raise RecordDecodeError(f"Failed to base64 decode the status record: {e}") from e

    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise RecordDecodeError(f"Status record is not valid UTF-8: {e}") from e

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise RecordDecodeError(f"Failed to parse the status record: {e}") from e
    if not isinstance(data, dict):
        raise RecordDecodeError(f"Status record must be a JSON object, got {type(data).__name__}")

    try:
        record = DeploymentStatusRecord.model_validate(data)
    except ValidationError as e:
        raise RecordDecodeError(f"Status record does not match the expected shape: {e}") from e
    return DecodedRecord(record=record, was_binary_encoded=was_binary_encoded)


def encode(record: DeploymentStatusRecord, was_binary_encoded: bool) -> bytes:
    text = json.dumps(record.to_json_dict(), ensure_ascii=False, separators=(",", ":"))
    raw = text.encode("utf-8")
    if was_binary_encoded:
        return base64.b64encode(raw)
    return raw
