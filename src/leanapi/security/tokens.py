"""Signed, expiring bearer tokens with key rotation.

Tokens are JSON claims signed with ``itsdangerous``. Every token records
the id of the key that signed it (``kid``), so several keys can be valid
at once while only the current one signs new tokens::

    signer = TokenSigner({"2024a": "old-secret", "2024b": "new-secret"}, current_kid="2024b")
    token = signer.issue({"sub": "42", "scopes": ["users.read"]})
    claims = signer.verify(token)

``issue`` adds ``iat``, ``nbf``, ``exp``, and ``jti``; ``verify`` checks
the signature and the time claims with a small leeway for clock skew.
"""

import secrets
import time
from collections.abc import Callable, Mapping
from typing import Any

from itsdangerous import BadData, URLSafeSerializer

from leanapi.config import env_int, env_str
from leanapi.errors import ConfigurationError, LeanError

DEFAULT_TTL = 900
DEFAULT_LEEWAY = 30
SALT = "leanapi.bearer-token"


class InvalidToken(LeanError):  # noqa: N818
    """A bearer token failed signature or time-claim verification."""


def parse_keys(value: str) -> dict[str, str]:
    """Parse ``"kid:secret,kid2:secret2"`` into a mapping."""
    keys: dict[str, str] = {}
    for pair in value.split(","):
        if not pair.strip():
            continue
        kid, sep, secret = pair.partition(":")
        kid, secret = kid.strip(), secret.strip()
        if not sep or not kid or not secret:
            msg = f"Invalid token key entry {pair.strip()!r}; expected 'kid:secret'"
            raise ConfigurationError(msg)
        keys[kid] = secret
    return keys


class TokenSigner:
    """Issue and verify bearer tokens."""

    __slots__ = ("_clock", "_serializers", "current_kid", "leeway", "ttl")

    def __init__(
        self,
        keys: Mapping[str, str],
        current_kid: str,
        *,
        ttl: int = DEFAULT_TTL,
        leeway: int = DEFAULT_LEEWAY,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if not keys:
            msg = "TokenSigner needs at least one signing key"
            raise ConfigurationError(msg)
        if current_kid not in keys:
            msg = f"Current key id {current_kid!r} is not among the configured keys"
            raise ConfigurationError(msg)
        self._serializers = {
            kid: URLSafeSerializer(secret, salt=SALT) for kid, secret in keys.items()
        }
        self.current_kid = current_kid
        self.ttl = ttl
        self.leeway = leeway
        self._clock = clock

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "TokenSigner":
        """Read ``AUTH_TOKEN_KEYS``, ``AUTH_TOKEN_CURRENT_KID``, and ``AUTH_TOKEN_TTL``."""
        raw_keys = env_str("AUTH_TOKEN_KEYS", environ=environ)
        if not raw_keys:
            msg = "AUTH_TOKEN_KEYS is not set"
            raise ConfigurationError(msg)
        current = env_str("AUTH_TOKEN_CURRENT_KID", environ=environ)
        if not current:
            msg = "AUTH_TOKEN_CURRENT_KID is not set"
            raise ConfigurationError(msg)
        return cls(
            parse_keys(raw_keys),
            current,
            ttl=env_int("AUTH_TOKEN_TTL", DEFAULT_TTL, environ) or DEFAULT_TTL,
        )

    def issue(self, claims: Mapping[str, Any], ttl: int | None = None) -> str:
        """Sign *claims* with the current key and return the token."""
        now = int(self._clock())
        payload = {
            **claims,
            "kid": self.current_kid,
            "iat": now,
            "nbf": now,
            "exp": now + (self.ttl if ttl is None else ttl),
            "jti": secrets.token_hex(16),
        }
        return self._serializers[self.current_kid].dumps(payload)

    def verify(self, token: str) -> dict[str, Any]:
        """Return the claims of a valid token.

        Raises ``InvalidToken`` for malformed tokens, unknown key ids,
        bad signatures, and tokens outside their validity window.
        """
        any_serializer = self._serializers[self.current_kid]
        try:
            _, unverified = any_serializer.loads_unsafe(token)
        except BadData as exc:
            raise InvalidToken("Invalid token format") from exc
        if not isinstance(unverified, dict):
            raise InvalidToken("Invalid token format")

        kid = unverified.get("kid")
        serializer = self._serializers.get(kid) if isinstance(kid, str) else None
        if serializer is None:
            raise InvalidToken(f"Unknown key ID: {kid}")

        try:
            claims = serializer.loads(token)
        except BadData as exc:
            raise InvalidToken("Invalid signature") from exc

        self._check_times(claims)
        return claims

    def _check_times(self, claims: Mapping[str, Any]) -> None:
        now = self._clock()
        nbf = claims.get("nbf")
        if isinstance(nbf, int | float) and nbf > now + self.leeway:
            raise InvalidToken("Token not yet valid")
        exp = claims.get("exp")
        if isinstance(exp, int | float) and exp < now - self.leeway:
            raise InvalidToken("Token has expired")
        iat = claims.get("iat")
        if isinstance(iat, int | float) and iat > now + self.leeway:
            raise InvalidToken("Token issued in the future")
