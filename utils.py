import base64
import binascii
import math
import re
import secrets
import time
from datetime import date, datetime, time as dt_time, timezone
from typing import Optional, Tuple, Union

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
ID_STAMP_WIDTH = 11

_B36 = "0123456789abcdefghijklmnopqrstuvwxyz"


# ---------------------------
# Ids and timestamps
# ---------------------------

def to_base36(n: int) -> str:
    if n == 0:
        return "0"
    out = []
    while n:
        n, r = divmod(n, 36)
        out.append(_B36[r])
    return "".join(reversed(out))


def generate_id() -> str:
    # Fixed-width microsecond stamp keeps ids sortable by creation time
    stamp = to_base36(time.time_ns() // 1000).rjust(ID_STAMP_WIDTH, "0")
    return stamp + secrets.token_hex(4)


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def as_instant(value: Union[str, date, datetime]) -> datetime:
    """Coerce a date, datetime or ISO string to an aware UTC datetime.

    Naive datetimes are taken as UTC; a bare date means midnight UTC.
    """
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            value = datetime.fromisoformat(text)
        except ValueError:
            value = date.fromisoformat(text)
    if not isinstance(value, date):
        raise ValueError(f"Not a date or datetime: {value!r}")
    if not isinstance(value, datetime):
        value = datetime.combine(value, dt_time.min)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# ---------------------------
# Validation helpers
# ---------------------------

def is_valid_email(email: str) -> bool:
    return bool(EMAIL_RE.match(email or ""))


def file_extension(file_name: str) -> str:
    return (file_name or "").split(".")[-1].lower()


# ---------------------------
# Inline file payloads
# ---------------------------

def encode_data_url(content_type: str, data: bytes) -> str:
    payload = base64.b64encode(data).decode("ascii")
    return f"data:{content_type or 'application/octet-stream'};base64,{payload}"


def decode_data_url(data_url: str) -> Tuple[str, bytes]:
    """Split a base64 data URL into (mime type, raw bytes)."""
    if not data_url or not data_url.startswith("data:") or "," not in data_url:
        raise ValueError("Not a data URL")
    header, payload = data_url[5:].split(",", 1)
    parts = header.split(";")
    mime = parts[0] or "application/octet-stream"
    if "base64" not in parts[1:]:
        raise ValueError("Only base64 data URLs are supported")
    try:
        return mime, base64.b64decode(payload, validate=True)
    except binascii.Error as e:
        raise ValueError(f"Malformed payload: {e}") from e


def format_file_size(num_bytes: Optional[int]) -> str:
    if not num_bytes:
        return "0 Bytes"
    k = 1024
    sizes = ["Bytes", "KB", "MB", "GB"]
    i = min(int(math.floor(math.log(num_bytes) / math.log(k))), len(sizes) - 1)
    value = round(num_bytes / math.pow(k, i), 2)
    return f"{value:g} {sizes[i]}"
