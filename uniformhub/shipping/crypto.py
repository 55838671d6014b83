"""
Provider credential bundles.

Credentials are stored as a Fernet token of a JSON object. The key comes
from ``CREDENTIAL_ENCRYPTION_KEY`` or, when that is unset, is derived from
``SECRET_KEY``. The order pipeline only ever decrypts.
"""

import base64
import json
import logging
from typing import Any, Dict, Optional

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from django.conf import settings

from .exceptions import InvalidProviderCredentialsError

logger = logging.getLogger(__name__)

_KEY_DERIVATION_SALT = b"uniformhub_provider_credentials_v1"

# Cached Fernet instance
_fernet: Optional[Fernet] = None


def _get_fernet() -> Fernet:
    """Get or create the Fernet instance."""
    global _fernet

    if _fernet is None:
        if settings.CREDENTIAL_ENCRYPTION_KEY:
            key = settings.CREDENTIAL_ENCRYPTION_KEY.encode()
        else:
            kdf = PBKDF2HMAC(
                algorithm=hashes.SHA256(),
                length=32,
                salt=_KEY_DERIVATION_SALT,
                iterations=100000,
            )
            key = base64.urlsafe_b64encode(kdf.derive(settings.SECRET_KEY.encode()))
        try:
            _fernet = Fernet(key)
        except ValueError as exc:
            raise InvalidProviderCredentialsError(f"CREDENTIAL_ENCRYPTION_KEY is not a valid Fernet key: {exc}")

    return _fernet


def reset_cipher() -> None:
    """Forget the cached key, e.g. after the encryption settings change."""
    global _fernet
    _fernet = None


def encrypt_credentials(bundle: Dict[str, Any]) -> str:
    """Encrypt a credential bundle for storage by company configuration."""
    return _get_fernet().encrypt(json.dumps(bundle, sort_keys=True).encode()).decode()


def decrypt_credentials(token: str, provider_code: str = "", company_code: str = "") -> Dict[str, Any]:
    """
    Decrypt a stored credential bundle.

    Raises:
        InvalidProviderCredentialsError: Empty, undecryptable or non-object bundle
    """
    if not token:
        raise InvalidProviderCredentialsError(
            "No credentials stored", provider_code=provider_code, company_code=company_code
        )

    try:
        plaintext = _get_fernet().decrypt(token.encode())
    except InvalidToken:
        logger.error(f"Credential decryption failed for {provider_code} / {company_code}: invalid token")
        raise InvalidProviderCredentialsError(
            "Stored credentials could not be decrypted (wrong key or corrupted data)",
            provider_code=provider_code, company_code=company_code,
        )

    try:
        bundle = json.loads(plaintext)
    except ValueError:
        bundle = None
    if not isinstance(bundle, dict):
        raise InvalidProviderCredentialsError(
            "Stored credentials are not a JSON object", provider_code=provider_code, company_code=company_code
        )
    return bundle
