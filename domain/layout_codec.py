"""
Obfuscation of a mines layout for the client.

The layout is serialised, XORed with an HMAC-SHA256 keystream derived from a
per-round key and a random salt, and sent as `base64url(salt || ciphertext)`.
The key stays on the server until the round ends, at which point it is handed
to the client so the layout it received at the start can be decoded and
checked against the board that was actually played.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
import secrets
from typing import Iterable, List, Optional

SALT_BYTES = 16


def generate_key() -> str:
    return secrets.token_hex(16)


def _keystream(key: str, salt: bytes, length: int) -> bytes:
    blocks = []
    counter = 0
    while sum(len(b) for b in blocks) < length:
        msg = salt + counter.to_bytes(4, "big")
        blocks.append(hmac.new(key.encode(), msg, hashlib.sha256).digest())
        counter += 1
    return b"".join(blocks)[:length]


def _xor(data: bytes, stream: bytes) -> bytes:
    return bytes(a ^ b for a, b in zip(data, stream))


def encode_layout(mines: Iterable[int], key: str, salt: Optional[bytes] = None) -> str:
    salt = salt if salt is not None else secrets.token_bytes(SALT_BYTES)
    plain = json.dumps({"mines": sorted(mines)}, separators=(",", ":")).encode()
    cipher = _xor(plain, _keystream(key, salt, len(plain)))
    return base64.urlsafe_b64encode(salt + cipher).decode("ascii")


def decode_layout(token: str, key: str) -> List[int]:
    """Inverse of `encode_layout`. Raises ValueError on a bad token or key."""

    raw = base64.urlsafe_b64decode(token.encode("ascii"))
    salt, cipher = raw[:SALT_BYTES], raw[SALT_BYTES:]
    plain = _xor(cipher, _keystream(key, salt, len(cipher)))
    try:
        data = json.loads(plain.decode())
    except UnicodeDecodeError as exc:
        raise ValueError("layout token does not match key") from exc
    return [int(n) for n in data["mines"]]
