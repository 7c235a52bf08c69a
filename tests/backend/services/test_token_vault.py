import pytest

from backend.core.errors import CryptoError
from backend.services.token_vault import TokenVault, derive_fernet_key


def test_decrypt_returns_original_refresh_token(vault: TokenVault) -> None:
    ciphertext = vault.encrypt('1//0g-refresh-token')

    assert ciphertext != '1//0g-refresh-token'
    assert vault.decrypt(ciphertext) == '1//0g-refresh-token'


def test_encrypt_is_not_deterministic(vault: TokenVault) -> None:
    assert vault.encrypt('same-token') != vault.encrypt('same-token')


def test_decrypt_rejects_ciphertext_from_another_key(vault: TokenVault) -> None:
    ciphertext = TokenVault('another-secret').encrypt('refresh-token')

    with pytest.raises(CryptoError):
        vault.decrypt(ciphertext)


@pytest.mark.parametrize('ciphertext', ['', 'not-a-fernet-token', 'U2FsdGVkX1+legacy==', None])
def test_decrypt_rejects_malformed_ciphertext(vault: TokenVault, ciphertext) -> None:
    with pytest.raises(CryptoError):
        vault.decrypt(ciphertext)


def test_derived_key_is_stable_and_fernet_sized() -> None:
    key = derive_fernet_key('secret')

    assert key == derive_fernet_key('secret')
    assert len(key) == 44


def test_empty_secret_is_refused() -> None:
    with pytest.raises(ValueError):
        TokenVault('')
