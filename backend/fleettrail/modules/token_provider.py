"""Bearer token provider for the telemetry API.

Signs in against the upstream OpenID Connect identity provider with the
authorization-code flow + PKCE (S256), scraping the login form action from
the hosted login page, and caches the resulting access token until shortly
before it expires.

Usage:
    provider = TokenProvider()
    token = provider.get_token()
    provider.force_refresh()   # after the API answers 401
"""
from __future__ import annotations

import base64
import hashlib
import logging
import re
import secrets
import threading
import time
from typing import Callable
from urllib.parse import parse_qs, urlsplit

import httpx

from fleettrail.config import settings

logger = logging.getLogger(__name__)

_LOGIN_ACTION_RE = re.compile(r'"loginAction":\s*"(https?://[^"]+)"')


class TokenAcquisitionError(RuntimeError):
    """The identity provider flow did not yield an access token."""


def _base64url(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def generate_code_verifier() -> str:
    """32 random bytes, base64url without padding (43 characters)."""
    return _base64url(secrets.token_bytes(32))


def code_challenge(verifier: str) -> str:
    """S256 code challenge for *verifier*."""
    return _base64url(hashlib.sha256(verifier.encode("ascii")).digest())


class TokenProvider:
    """Cached access token with lazy refresh.

    ``get_token`` and ``force_refresh`` share one lock, so concurrent callers
    never run the sign-in flow twice at once.
    """

    def __init__(
        self,
        username: str | None = None,
        password: str | None = None,
        transport: httpx.BaseTransport | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._username = username or settings.IDP_USERNAME
        self._password = password or settings.IDP_PASSWORD
        self._transport = transport
        self._clock = clock
        self._lock = threading.Lock()
        self._token: str | None = None
        self._expires_at: float = 0.0

    def get_token(self) -> str:
        with self._lock:
            if self._token is None or self._clock() >= self._expires_at:
                self._refresh()
            return self._token

    def force_refresh(self) -> None:
        with self._lock:
            self._refresh()

    def invalidate(self) -> None:
        """Drop the cached token; the next ``get_token`` signs in again."""
        with self._lock:
            self._token = None
            self._expires_at = 0.0

    def _refresh(self) -> None:
        if not self._username or not self._password:
            raise TokenAcquisitionError("IDP_USERNAME and IDP_PASSWORD must be set")

        verifier = generate_code_verifier()
        base = settings.IDP_BASE_URL.rstrip("/")

        with httpx.Client(
            timeout=settings.HTTP_TIMEOUT_SECONDS,
            follow_redirects=False,
            transport=self._transport,
        ) as client:
            login_url = self._login_action(client, base, code_challenge(verifier))
            code = self._authorization_code(client, login_url)
            resp = client.post(
                f"{base}/token",
                data={
                    "grant_type": "authorization_code",
                    "code": code,
                    "redirect_uri": settings.IDP_REDIRECT_URI,
                    "code_verifier": verifier,
                    "client_id": settings.IDP_CLIENT_ID,
                },
            )
            resp.raise_for_status()

        payload = resp.json()
        try:
            token = payload["access_token"]
            expires_in = int(payload["expires_in"])
        except (KeyError, TypeError, ValueError) as exc:
            raise TokenAcquisitionError(f"malformed token response: {exc}") from exc

        self._token = token
        self._expires_at = self._clock() + expires_in - settings.TOKEN_EXPIRY_MARGIN_SECONDS
        logger.info("Acquired access token (expires in %ds)", expires_in)

    def _login_action(self, client: httpx.Client, base: str, challenge: str) -> str:
        resp = client.get(
            f"{base}/auth",
            params={
                "client_id": settings.IDP_CLIENT_ID,
                "redirect_uri": settings.IDP_REDIRECT_URI,
                "response_type": "code",
                "scope": "openid",
                "code_challenge": challenge,
                "code_challenge_method": "S256",
            },
        )
        match = _LOGIN_ACTION_RE.search(resp.text)
        if match is None:
            raise TokenAcquisitionError(
                f"login form action not found on auth page (HTTP {resp.status_code})"
            )
        return match.group(1).replace("&amp;", "&")

    def _authorization_code(self, client: httpx.Client, login_url: str) -> str:
        resp = client.post(
            login_url,
            data={
                "username": self._username,
                "password": self._password,
                "credentialId": "",
            },
        )
        if resp.status_code not in (302, 303):
            raise TokenAcquisitionError(f"login failed: HTTP {resp.status_code}")

        location = resp.headers.get("location", "")
        code = parse_qs(urlsplit(location).query).get("code", [None])[0]
        if not code:
            raise TokenAcquisitionError("authorization code missing from login redirect")
        return code
