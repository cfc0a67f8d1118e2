"""Session bridge: upstream cookie jars exposed as bearer credentials"""

import time
import uuid
from typing import Optional

import jwt
from loguru import logger

from .api_client import PortalClient
from .config import (
    ACCESS_TOKEN_TTL,
    JWT_ALGORITHM,
    JWT_SECRET_KEY,
    REFRESH_KEY_PREFIX,
    REFRESH_TOKEN_TTL,
    TOKEN_KEY_PREFIX,
)
from .exceptions import (
    AuthenticationError,
    RefreshExpiredError,
    RefreshNotFoundError,
    TokenExpiredError,
    TokenInvalidError,
    TokenRevokedError,
)
from .models import CookieJar, LoginResult, TokenPair, jar_from_list, jar_to_list
from .storage import MemoryStore


def _short(token: str) -> str:
    return f"{token[:8]}..."


class SessionBridge:
    """
    Turns a portal username/password exchange into a bearer credential.

    The bearer is a signed JWT carrying only the user identity; the upstream
    cookie jar lives in the store under the bearer value. Both must hold for
    a request to be authorized: the signature proves identity, the store
    entry proves a live session. Deleting the entry revokes the bearer.
    """

    def __init__(
        self,
        client: PortalClient,
        store: MemoryStore,
        secret_key: str = JWT_SECRET_KEY,
        access_ttl: int = ACCESS_TOKEN_TTL,
        refresh_ttl: int = REFRESH_TOKEN_TTL,
    ):
        """
        Initialize session bridge.

        Args:
            client: Upstream portal client
            store: Credential store (bearer -> jar, refresh handle -> identity)
            secret_key: HMAC key for bearer signatures
            access_ttl: Bearer lifetime in seconds
            refresh_ttl: Refresh handle lifetime in seconds
        """
        self.client = client
        self.store = store
        self.secret_key = secret_key
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl

    async def login(self, user_id: str, password: str) -> TokenPair:
        """
        Log in upstream and issue a bearer credential and refresh handle.

        Raises:
            AuthenticationError: Upstream did not redirect with a full cookie set
            UpstreamUnavailableError: Portal unreachable (not retried here)
        """
        result = await self.client.login(user_id, password)
        if not is_login_success(result):
            logger.warning(
                f"🚫 Login rejected for {user_id} "
                f"(status {result.status}, {len(result.cookies)} cookie(s))"
            )
            raise AuthenticationError("Portal login failed: invalid credentials or no session cookies")

        tokens = await self._issue(user_id, result.cookies)
        logger.success(f"✅ Login succeeded for {user_id}")
        return tokens

    async def verify(self, bearer: str) -> str:
        """
        Resolve a bearer credential to its user identity.

        Raises:
            TokenInvalidError: Bad signature or malformed token
            TokenExpiredError: Signature valid but past expiry
            TokenRevokedError: Valid and unexpired, but no live session entry
        """
        user_id = self._decode(bearer)
        if await self.store.get(TOKEN_KEY_PREFIX + bearer) is None:
            raise TokenRevokedError("Session has ended or was revoked")
        return user_id

    async def resolve_cookies(self, bearer: str) -> CookieJar:
        """Verify a bearer credential and return the upstream cookie jar behind it"""
        self._decode(bearer)
        cookies = await self.store.get(TOKEN_KEY_PREFIX + bearer)
        if cookies is None:
            raise TokenRevokedError("Session has ended or was revoked")
        return jar_from_list(cookies)

    async def refresh(self, refresh_token: str, user_id: str, password: str) -> TokenPair:
        """
        Mint a new bearer/refresh pair by re-authenticating upstream.

        Passwords are never stored, so the caller must supply them again;
        the refresh handle alone authorizes nothing.

        Raises:
            RefreshNotFoundError: Unknown refresh handle
            RefreshExpiredError: Handle past its expiry (entry is deleted)
            AuthenticationError: Handle belongs to another user, or upstream
                re-login failed
        """
        key = REFRESH_KEY_PREFIX + refresh_token
        info = await self.store.get(key)
        if info is None:
            logger.error(f"Refresh handle not found: {_short(refresh_token)}")
            raise RefreshNotFoundError("Unknown refresh token")

        if int(time.time()) > info["expiresAt"]:
            logger.error(f"Refresh handle expired: {_short(refresh_token)}")
            await self.store.delete(key)
            raise RefreshExpiredError("Refresh token has expired")

        if user_id != info["userId"]:
            logger.warning(f"🚫 Refresh handle {_short(refresh_token)} presented by another user")
            raise AuthenticationError("Refresh token does not belong to this user")

        result = await self.client.login(user_id, password)
        if not is_login_success(result):
            logger.warning(f"🚫 Re-login failed during refresh for {info['userId']}")
            raise AuthenticationError("Portal re-login failed, please log in again")

        tokens = await self._issue(info["userId"], result.cookies)
        logger.success(f"🔄 Tokens refreshed for {info['userId']}")
        return tokens

    async def logout(self, bearer: Optional[str], refresh_token: Optional[str]) -> None:
        """Delete the session and refresh entries; idempotent"""
        if bearer:
            await self.store.delete(TOKEN_KEY_PREFIX + bearer)
        if refresh_token:
            await self.store.delete(REFRESH_KEY_PREFIX + refresh_token)
        logger.info(
            f"👋 Logout: bearer={_short(bearer or '')} refresh={_short(refresh_token or '')}"
        )

    async def _issue(self, user_id: str, cookies: CookieJar) -> TokenPair:
        now = int(time.time())
        access_token = jwt.encode(
            {"userId": user_id, "type": "access", "iat": now, "exp": now + self.access_ttl},
            self.secret_key,
            algorithm=JWT_ALGORITHM,
        )
        refresh_token = str(uuid.uuid4())

        await self.store.set(
            REFRESH_KEY_PREFIX + refresh_token,
            {
                "id": str(uuid.uuid4()),
                "userId": user_id,
                "token": refresh_token,
                "createdAt": now,
                "expiresAt": now + self.refresh_ttl,
            },
            # Outlives expiresAt so an expired handle is reported as expired, not unknown
            ttl=self.refresh_ttl + self.access_ttl,
        )
        await self.store.set(
            TOKEN_KEY_PREFIX + access_token,
            jar_to_list(cookies),
            ttl=self.access_ttl,
        )
        logger.debug(f"   Issued bearer {_short(access_token)} / refresh {_short(refresh_token)}")

        return TokenPair(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=self.access_ttl,
        )

    def _decode(self, bearer: str) -> str:
        try:
            claims = jwt.decode(bearer, self.secret_key, algorithms=[JWT_ALGORITHM])
        except jwt.ExpiredSignatureError as e:
            raise TokenExpiredError("Access token has expired") from e
        except jwt.InvalidTokenError as e:
            raise TokenInvalidError("Invalid access token") from e

        user_id = claims.get("userId")
        if not user_id or claims.get("type") != "access":
            raise TokenInvalidError("Invalid access token")
        return user_id


def is_login_success(result: LoginResult) -> bool:
    """Upstream signals success only by redirecting and setting a full cookie set"""
    redirected = 300 <= result.status < 400
    return redirected and bool(result.cookies) and all(c.is_complete() for c in result.cookies)
