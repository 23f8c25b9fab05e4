"""Request signatures and sensitive-field obfuscation.

Both primitives are keyed with a secret that ships with every client, so they
provide tamper evidence and hide values from casual inspection only. They are
not a confidentiality guarantee.
"""

import base64
import hashlib
import hmac
import json
from dataclasses import dataclass

from cryptography.fernet import Fernet, InvalidToken

from winboard.domain.errors import ValidationError


def _signing_message(endpoint: str, timestamp_ms: int) -> bytes:
    return f"{endpoint}:{timestamp_ms}".encode()


@dataclass(frozen=True)
class RequestSigner:
    """HMAC-SHA256 signer over ``endpoint:timestamp``."""

    secret: str

    def sign(self, endpoint: str, timestamp_ms: int) -> str:
        """Return the hex MAC for an endpoint and timestamp pair."""
        return hmac.new(
            self.secret.encode(),
            _signing_message(endpoint, timestamp_ms),
            hashlib.sha256,
        ).hexdigest()

    def verify(self, endpoint: str, timestamp_ms: int, mac: str) -> bool:
        """Check a MAC for the exact endpoint and timestamp it was issued for."""
        return hmac.compare_digest(self.sign(endpoint, timestamp_ms), mac)


@dataclass
class FieldCipher:
    """Reversible transform applied to selected body fields."""

    fernet: Fernet

    @classmethod
    def from_secret(cls, secret: str) -> "FieldCipher":
        """Derive a Fernet key from the shared secret."""
        key = base64.urlsafe_b64encode(hashlib.sha256(secret.encode()).digest())
        return cls(fernet=Fernet(key))

    def encrypt(self, value: object) -> str:
        """Serialize a value to JSON and return its opaque token."""
        return self.fernet.encrypt(json.dumps(value).encode()).decode()

    def decrypt(self, token: str) -> object:
        """Reverse :meth:`encrypt`."""
        try:
            return json.loads(self.fernet.decrypt(token.encode()))
        except InvalidToken:
            raise ValidationError("Malformed protected field") from None

    def protect(
        self, body: dict[str, object], fields: frozenset[str]
    ) -> dict[str, object]:
        """Return a copy of ``body`` with only ``fields`` transformed."""
        protected = dict(body)
        for name in fields:
            if name in protected and protected[name] is not None:
                protected[name] = self.encrypt(protected[name])
        return protected

    def reveal(
        self, body: dict[str, object], fields: frozenset[str]
    ) -> dict[str, object]:
        """Return a copy of ``body`` with ``fields`` restored."""
        revealed = dict(body)
        for name in fields:
            value = revealed.get(name)
            if isinstance(value, str):
                revealed[name] = self.decrypt(value)
        return revealed
