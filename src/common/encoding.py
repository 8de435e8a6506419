from __future__ import annotations

import base64


def to_b64(data: bytes) -> str:
    """Standard (padded) base64 text form of opaque bytes."""
    return base64.b64encode(bytes(data)).decode("ascii")


def from_b64(text: str) -> bytes:
    return base64.b64decode(text.encode("ascii"), validate=True)


__all__ = ["to_b64", "from_b64"]
