"""Upstream HTTP client for the KNUE portal"""

import time
from typing import Dict, List, Optional

from curl_cffi import CurlError
from curl_cffi.requests import AsyncSession
from loguru import logger

from .config import (
    DEFAULT_REQUEST_TIMEOUT,
    LOGIN_HEADERS,
    LOGIN_URL,
    MENU_URL,
    PORTAL_BASE_URL,
)
from .exceptions import UpstreamUnavailableError
from .models import Cookie, CookieJar, LoginResult, cookie_header


class PortalClient:
    """
    Thin client for the three upstream interactions:
    - login (redirects never followed, the redirect itself is the success signal)
    - menu page fetch
    - authenticated get/post with a cookie jar

    A fresh HTTP session is opened per request so no cookie state leaks
    between users.
    """

    def __init__(
        self,
        base_url: str = PORTAL_BASE_URL,
        menu_url: str = MENU_URL,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
    ):
        """
        Initialize portal client.

        Args:
            base_url: Portal origin for authenticated paths
            menu_url: Absolute URL of the weekly menu page
            timeout: Per-request timeout in seconds
        """
        self.base_url = base_url.rstrip("/")
        self.menu_url = menu_url
        self.timeout = timeout
        self.impersonate = "chrome"

        logger.info(f"Portal client initialized (base: {self.base_url}, timeout: {timeout}s)")

    async def _request(self, method: str, url: str, request_id: str, **kwargs):
        """Send one request on a fresh session, mapping transport failures"""
        async with AsyncSession(impersonate=self.impersonate) as session:
            start_time = time.time()
            try:
                response = await session.request(method, url, timeout=self.timeout, **kwargs)
            except (CurlError, TimeoutError) as e:
                logger.error(f"❌ [{request_id}] UPSTREAM UNAVAILABLE")
                logger.error(f"   Error: {e}")
                raise UpstreamUnavailableError(f"{request_id} failed: {e}") from e

        duration = time.time() - start_time
        logger.debug(f"   ← [{request_id}] Response {response.status_code} ({duration:.2f}s)")
        return response

    def _check_server_error(self, response, request_id: str) -> None:
        if response.status_code >= 500:
            logger.error(f"❌ [{request_id}] HTTP {response.status_code} from portal")
            raise UpstreamUnavailableError(
                f"{request_id} failed: portal returned HTTP {response.status_code}"
            )

    async def login(self, user_id: str, password: str) -> LoginResult:
        """
        Submit the portal login form.

        Never raises on non-2xx: the raw status and captured cookies are
        returned for the session bridge to interpret.

        Args:
            user_id: Student / staff number
            password: Portal password

        Returns:
            LoginResult with the upstream status and the Set-Cookie jar

        Raises:
            UpstreamUnavailableError: On network error or timeout
        """
        logger.info(f"🔑 Portal login attempt for {user_id}")
        response = await self._request(
            "POST",
            LOGIN_URL,
            "login",
            headers=dict(LOGIN_HEADERS),
            data={"userNo": user_id, "password": password, "rememberMe": "N"},
            allow_redirects=False,
        )

        jar = parse_set_cookies(_set_cookie_headers(response.headers))
        logger.debug(f"   Login status {response.status_code}, {len(jar)} cookie(s)")
        return LoginResult(status=response.status_code, cookies=jar)

    async def fetch_menu_html(self) -> str:
        """Fetch the weekly menu page"""
        response = await self._request("GET", self.menu_url, "menu")
        self._check_server_error(response, "menu")
        logger.info(f"🍱 Menu page fetched ({len(response.text) / 1024:.1f}KB)")
        return response.text

    async def get(
        self,
        path: str,
        jar: CookieJar,
        referer: Optional[str] = None,
    ) -> str:
        """GET an authenticated portal page and return its body text"""
        headers = self._session_headers(jar, referer)
        response = await self._request("GET", self._url(path), f"GET {path}", headers=headers)
        self._check_server_error(response, f"GET {path}")
        return response.text

    async def post(
        self,
        path: str,
        jar: CookieJar,
        form: Dict[str, str],
        referer: Optional[str] = None,
    ) -> str:
        """POST a form to an authenticated portal page and return its body text"""
        headers = self._session_headers(jar, referer)
        headers["Content-Type"] = "application/x-www-form-urlencoded"
        headers["Origin"] = self.base_url
        response = await self._request(
            "POST", self._url(path), f"POST {path}", headers=headers, data=form
        )
        self._check_server_error(response, f"POST {path}")
        return response.text

    def _url(self, path: str) -> str:
        if path.startswith("http"):
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    def _session_headers(self, jar: CookieJar, referer: Optional[str]) -> Dict[str, str]:
        headers = {"Cookie": cookie_header(jar)}
        if referer:
            headers["Referer"] = referer
        return headers


def _set_cookie_headers(headers) -> List[str]:
    """Every Set-Cookie header value, in response order"""
    if hasattr(headers, "get_list"):
        return list(headers.get_list("set-cookie"))
    value = headers.get("set-cookie")
    return [value] if value else []


def parse_set_cookies(values: List[str]) -> CookieJar:
    """Build a cookie jar from raw Set-Cookie header values"""
    return tuple(Cookie.from_set_cookie(value) for value in values if value)
