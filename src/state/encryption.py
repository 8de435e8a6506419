from __future__ import annotations

import base64
from typing import Dict, Protocol

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from common.errors import DecryptionError


_HKDF_INFO = b"keyless-flow/session"


class Encryption(Protocol):
    """Async symmetric encryption keyed by a caller-supplied secret string.

    `decrypt` must raise when the ciphertext was tampered with or produced
    under another key (`DecryptionError` preferred). The session store treats
    any exception from `decrypt` as "no usable session".
    """

    async def encrypt(self, key: str, plaintext: str) -> str: ...

    async def decrypt(self, key: str, ciphertext: str) -> str: ...


def _to_fernet(secret: str) -> Fernet:
    """Derive a Fernet instance from an arbitrary secret string.

    Fernet wants a urlsafe base64 32-byte key; the secret (an API key by
    default) is stretched to that with HKDF-SHA256.
    """
    raw = HKDF(
        algorithm=hashes.SHA256(),
        length=32,
        salt=None,
        info=_HKDF_INFO,
    ).derive(secret.encode("utf-8"))
    return Fernet(base64.urlsafe_b64encode(raw))


class FernetEncryption:
    """
    Default encryption adapter (Fernet: AES-128-CBC + HMAC-SHA256).

    Decrypting tampered ciphertext, or ciphertext produced under another key,
    raises `DecryptionError`.
    """

    def __init__(self) -> None:
        self._fernets: Dict[str, Fernet] = {}

    def _fernet(self, key: str) -> Fernet:
        f = self._fernets.get(key)
        if f is None:
            f = self._fernets[key] = _to_fernet(key)
        return f

    async def encrypt(self, key: str, plaintext: str) -> str:
        return self._fernet(key).encrypt(plaintext.encode("utf-8")).decode("ascii")

    async def decrypt(self, key: str, ciphertext: str) -> str:
        try:
            return self._fernet(key).decrypt(ciphertext.encode("utf-8")).decode("utf-8")
        except (InvalidToken, UnicodeError) as ex:
            raise DecryptionError("Failed to decrypt session: invalid Fernet token") from ex


def create_default_encryption() -> FernetEncryption:
    return FernetEncryption()


__all__ = ["Encryption", "FernetEncryption", "create_default_encryption"]
