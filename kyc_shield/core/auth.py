"""
Client identification: every API call names its client through
X-Device-ID (query parameter `device_id` for WebSockets, which browsers
cannot decorate with headers).
"""

import re

from fastapi import HTTPException

_DEVICE_ID_MAX_LEN = 128
_DEVICE_ID_RE = re.compile(r"^[a-zA-Z0-9\-_.]+$")


def validate_device_id(device_id: str) -> None:
    """
    Raises HTTP 400 if device_id is longer than 128 characters or contains
    characters outside [a-zA-Z0-9-_.]. Device ids end up in log lines and
    Redis keys, so they are kept to a safe alphabet.
    """
    if len(device_id) > _DEVICE_ID_MAX_LEN or not _DEVICE_ID_RE.match(device_id):
        raise HTTPException(status_code=400, detail="Invalid X-Device-ID")


def is_valid_device_id(device_id: str) -> bool:
    return len(device_id) <= _DEVICE_ID_MAX_LEN and bool(_DEVICE_ID_RE.match(device_id))
