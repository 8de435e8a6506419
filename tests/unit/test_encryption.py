from __future__ import annotations

import pytest

from common.errors import DecryptionError
from state.encryption import FernetEncryption


@pytest.mark.asyncio
async def test_encrypt_decrypt_roundtrip():
    enc = FernetEncryption()
    ciphertext = await enc.encrypt("api-key", '{"jwt":"x"}')
    assert '"jwt"' not in ciphertext
    assert await enc.decrypt("api-key", ciphertext) == '{"jwt":"x"}'


@pytest.mark.asyncio
async def test_decrypt_with_wrong_key_fails_distinctly():
    enc = FernetEncryption()
    ciphertext = await enc.encrypt("api-key", "secret")
    with pytest.raises(DecryptionError):
        await enc.decrypt("other-key", ciphertext)


@pytest.mark.asyncio
async def test_decrypt_tampered_ciphertext_fails_distinctly():
    enc = FernetEncryption()
    ciphertext = await enc.encrypt("api-key", "secret")
    tampered = ciphertext[:-6] + ("A" if ciphertext[-6] != "A" else "B") + ciphertext[-5:]
    with pytest.raises(DecryptionError):
        await enc.decrypt("api-key", tampered)
    with pytest.raises(DecryptionError):
        await enc.decrypt("api-key", "not-a-token")
