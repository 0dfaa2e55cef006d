from __future__ import annotations

import base64
import binascii
import json

from chatcore.domain.errors import InvalidInput


def encode_cursor(container_id: str, seq: int) -> str:
    payload = {"c": container_id, "s": int(seq)}
    return base64.urlsafe_b64encode(json.dumps(payload).encode()).decode()


def decode_cursor(s: str, *, container_id: str) -> int:
    """Return the last seen ``seq`` carried by ``s``.

    Cursors minted for a different container are rejected.
    """
    try:
        data = json.loads(base64.urlsafe_b64decode(s.encode()).decode())
        seq = int(data["s"])
        owner = str(data["c"])
    except (binascii.Error, UnicodeDecodeError, ValueError, KeyError, TypeError):
        raise InvalidInput("invalid_cursor") from None
    if owner != container_id or seq < 0:
        raise InvalidInput("invalid_cursor")
    return seq
