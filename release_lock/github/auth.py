"""Credentials the GitHub client can send.

Two kinds are used: the app's own RS256 JWT, accepted only by the ``/app``
endpoints, and installation access tokens for everything repository scoped.
"""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass

import jwt

from .exceptions import GitHubAuthenticationError

# GitHub rejects app JWTs whose lifetime exceeds ten minutes; iat is
# backdated to tolerate clock drift between us and GitHub.
APP_JWT_LIFETIME = 540
APP_JWT_CLOCK_DRIFT = 60
APP_JWT_REFRESH_MARGIN = 30


@dataclass
class AuthToken:
    """A credential plus the scheme it is sent with."""

    token: str
    token_type: str = "Bearer"
    expires_at: int | None = None

    @property
    def is_expired(self) -> bool:
        return self.expires_within(0)

    def expires_within(self, seconds: int) -> bool:
        """True if the token is no longer valid ``seconds`` from now."""
        if self.expires_at is None:
            return False
        return time.time() + seconds >= self.expires_at

    def to_header(self) -> dict[str, str]:
        return {"Authorization": f"{self.token_type} {self.token}"}


class AuthProvider(ABC):
    """Source of the Authorization header for a GitHubClient."""

    @abstractmethod
    async def get_token(self) -> AuthToken: ...

    @abstractmethod
    async def refresh_token(self) -> AuthToken: ...


class TokenAuth(AuthProvider):
    """A fixed installation access token, sent with the ``token`` scheme."""

    def __init__(self, token: str, token_type: str = "token"):  # nosec B107
        if not token:
            raise GitHubAuthenticationError("Token is required")
        self._token = AuthToken(token=token, token_type=token_type)

    async def get_token(self) -> AuthToken:
        return self._token

    async def refresh_token(self) -> AuthToken:
        return self._token


class GitHubAppAuth(AuthProvider):
    """Signs JWTs identifying the GitHub App.

    A JWT is reused until it is within ``APP_JWT_REFRESH_MARGIN`` seconds of
    expiring. Repository calls need an installation token obtained through
    :class:`~release_lock.github.installations.InstallationTokenProvider`.
    """

    def __init__(self, app_id: int | str, private_key: str):
        """Initialize GitHub App authentication.

        Args:
            app_id: GitHub App ID, used as the JWT issuer
            private_key: PEM encoded private key for RS256 signing
        """
        if not private_key:
            raise GitHubAuthenticationError("GitHub App private key is required")
        self.app_id = str(app_id)
        self.private_key = private_key
        self._jwt: AuthToken | None = None

    def _generate_jwt(self, now: int) -> str:
        claims = {
            "iat": now - APP_JWT_CLOCK_DRIFT,
            "exp": now + APP_JWT_LIFETIME,
            "iss": self.app_id,
        }
        try:
            return jwt.encode(claims, self.private_key, algorithm="RS256")
        except Exception as e:
            raise GitHubAuthenticationError(f"Failed to generate JWT: {e}") from e

    async def get_token(self) -> AuthToken:
        if self._jwt is None or self._jwt.expires_within(APP_JWT_REFRESH_MARGIN):
            return await self.refresh_token()
        return self._jwt

    async def refresh_token(self) -> AuthToken:
        now = int(time.time())
        self._jwt = AuthToken(
            token=self._generate_jwt(now),
            token_type="Bearer",  # nosec B106
            expires_at=now + APP_JWT_LIFETIME,
        )
        return self._jwt
