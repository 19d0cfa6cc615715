"""
Webhook Secret Derivation and Signature Verification.

Webhook secrets are derived from the internal repository id with HMAC-SHA256
under an application key, so the same secret can be recomputed when an inbound
payload has to be verified and never needs to be stored.
"""

import hashlib
import hmac
from typing import Optional

SIGNATURE_PREFIX = "sha256="


class HookSecretDeriver:
    """Derives per-repository webhook secrets from an application key."""

    def __init__(self, key: str):
        """Initialize the deriver.

        Args:
            key (str): Application secret key. May be empty, in which case any
                derivation attempt fails.
        """
        self._key = key.encode("utf-8")

    def __call__(self, repository_id: str) -> str:
        """
        Derive the webhook secret for an internal repository id.

        Args:
            repository_id (str): Internal repository identifier (never the
                provider-native id).

        Returns:
            str: Hex-encoded secret, identical for identical ids.

        Raises:
            ValueError: If no key is configured or the id is empty.
        """
        if not self._key:
            raise ValueError("Webhook secret key is not configured")
        if not repository_id:
            raise ValueError("Repository id is required to derive a webhook secret")
        return hmac.new(self._key, repository_id.encode("utf-8"), hashlib.sha256).hexdigest()

    def verify(self, repository_id: str, payload: bytes, signature: Optional[str]) -> bool:
        """
        Check an inbound ``X-Hub-Signature-256`` header against the payload.

        Args:
            repository_id (str): Internal repository identifier the hook belongs to.
            payload (bytes): Raw request body.
            signature (Optional[str]): Header value, ``sha256=<hex>``.

        Returns:
            bool: True when the signature matches.
        """
        if not signature or not signature.startswith(SIGNATURE_PREFIX):
            return False

        secret = self(repository_id).encode("utf-8")
        expected = hmac.new(secret, payload, hashlib.sha256).hexdigest()
        return hmac.compare_digest(expected, signature[len(SIGNATURE_PREFIX):])
