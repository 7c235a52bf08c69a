"""Symmetric encryption of OAuth refresh tokens at rest.

One process-wide secret keys every stored token, so compromise of
``TOKEN_ENCRYPTION_KEY`` exposes all of them, including those written before
the compromise. There is no key rotation.
"""

import base64
import hashlib
from functools import lru_cache

from cryptography.fernet import Fernet, InvalidToken

from backend.core import config
from backend.core.errors import CryptoError


def derive_fernet_key(secret: str) -> bytes:
    return base64.urlsafe_b64encode(hashlib.sha256(secret.encode('utf-8')).digest())


class TokenVault:
    def __init__(self, secret: str):
        if not secret:
            raise ValueError('Token encryption secret must not be empty.')
        self._fernet = Fernet(derive_fernet_key(secret))

    def encrypt(self, plaintext: str) -> str:
        return self._fernet.encrypt(plaintext.encode('utf-8')).decode('ascii')

    def decrypt(self, ciphertext: str) -> str:
        if not isinstance(ciphertext, str) or not ciphertext:
            raise CryptoError('Ciphertext is empty.')
        try:
            return self._fernet.decrypt(ciphertext.encode('ascii')).decode('utf-8')
        except (InvalidToken, UnicodeError) as exc:
            raise CryptoError('Ciphertext is malformed or was encrypted with a different key.') from exc


@lru_cache
def get_token_vault() -> TokenVault:
    return TokenVault(config.TOKEN_ENCRYPTION_KEY)
