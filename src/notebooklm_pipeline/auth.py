"""Authentication helpers for the NotebookLM pipeline.

Two layers:

* Google cookies for the signed-in account. They are long-lived and cached
  on disk (``~/.notebooklm-pipeline/auth.json``) or passed in through
  ``NOTEBOOKLM_COOKIES``.
* Per-session credentials (CSRF token ``SNlM0e`` and session ID ``FdrFJe``)
  scraped from the NotebookLM homepage. These are owned by a
  :class:`TokenManager` and re-fetched whenever the service rejects them.
"""

import json
import logging
import os
import re
import time
from dataclasses import dataclass
from pathlib import Path

import httpx

from . import constants
from .errors import AuthRequired, ProtocolDecodeError, TransportError

logger = logging.getLogger("notebooklm_pipeline.api")

# Tokens that need to be present for auth to work
REQUIRED_COOKIES = ["SID", "HSID", "SSID", "APISID", "SAPISID"]

# Headers required for page fetch (must look like a browser navigation)
PAGE_FETCH_HEADERS = {
    "User-Agent": "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/143.0.0.0 Safari/537.36",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,image/apng,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
    "Sec-Fetch-Dest": "document",
    "Sec-Fetch-Mode": "navigate",
    "Sec-Fetch-Site": "none",
    "Sec-Fetch-User": "?1",
}

CSRF_PATTERN = re.compile(r'"SNlM0e"\s*:\s*"([^"]+)"')
SESSION_ID_PATTERN = re.compile(r'"FdrFJe"\s*:\s*"([^"]+)"')
BUILD_LABEL_PATTERN = re.compile(r'"cfb2h"\s*:\s*"([^"]+)"')


def get_home_dir() -> Path:
    """Directory holding the cookie cache, pipeline state and settings."""
    override = os.environ.get("NOTEBOOKLM_PIPELINE_HOME")
    home = Path(override) if override else Path.home() / ".notebooklm-pipeline"
    home.mkdir(parents=True, exist_ok=True)
    return home


def get_cache_path() -> Path:
    """Get the path to the auth cache file."""
    return get_home_dir() / "auth.json"


# =============================================================================
# Cookies
# =============================================================================

@dataclass
class AuthCookies:
    """Google account cookies used to act as the signed-in user."""
    cookies: dict[str, str]
    extracted_at: float = 0.0

    def to_dict(self) -> dict:
        return {
            "cookies": self.cookies,
            "extracted_at": self.extracted_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AuthCookies":
        return cls(
            cookies=data["cookies"],
            extracted_at=data.get("extracted_at", 0),
        )

    def is_expired(self, max_age_hours: float = 168) -> bool:
        """Check if cookies are older than max_age_hours.

        Default is 168 hours (1 week) since cookies are stable for weeks.
        """
        age_seconds = time.time() - self.extracted_at
        return age_seconds > (max_age_hours * 3600)

    @property
    def cookie_header(self) -> str:
        """Get cookies as a header string."""
        return "; ".join(f"{k}={v}" for k, v in self.cookies.items())


def parse_cookie_header(cookie_header: str) -> dict[str, str]:
    """Extract cookies from a copy-pasted Cookie header value."""
    cookies = {}
    for part in cookie_header.split(";"):
        part = part.strip()
        if "=" in part:
            key, value = part.split("=", 1)
            cookies[key.strip()] = value.strip()
    return cookies


def validate_cookies(cookies: dict[str, str]) -> bool:
    """Check if required cookies are present."""
    return all(required in cookies for required in REQUIRED_COOKIES)


def load_cached_cookies() -> AuthCookies | None:
    """Load cookies from cache if they exist.

    Old cookies are still returned: the redirect-to-login check during token
    acquisition is the real validity test.
    """
    cache_path = get_cache_path()
    if not cache_path.exists():
        return None

    try:
        with open(cache_path) as f:
            cached = AuthCookies.from_dict(json.load(f))
    except (json.JSONDecodeError, KeyError, TypeError) as e:
        logger.warning(f"Failed to load cached cookies: {e}")
        return None

    if cached.is_expired():
        logger.info("Cached cookies are older than 1 week. They may still work.")
    return cached


def save_cookies_to_cache(cookies: AuthCookies) -> Path:
    """Save cookies to the cache file and return its path."""
    cache_path = get_cache_path()
    with open(cache_path, "w") as f:
        json.dump(cookies.to_dict(), f, indent=2)
    return cache_path


def resolve_cookies() -> dict[str, str]:
    """Cookies from ``NOTEBOOKLM_COOKIES``, else from the cache file.

    Raises:
        AuthRequired: If neither source has cookies.
    """
    cookie_header = os.environ.get("NOTEBOOKLM_COOKIES", "")
    if cookie_header:
        return parse_cookie_header(cookie_header)

    cached = load_cached_cookies()
    if cached and cached.cookies:
        return cached.cookies

    raise AuthRequired(
        "No authentication found. Either:\n"
        "1. Run 'notebooklm-pipeline login --cookies \"<Cookie header>\"', or\n"
        "2. Set NOTEBOOKLM_COOKIES environment variable"
    )


# =============================================================================
# Session credentials
# =============================================================================

def extract_csrf_from_page_source(html: str) -> str | None:
    """Extract CSRF token (WIZ_global_data.SNlM0e) from page HTML."""
    match = CSRF_PATTERN.search(html)
    return match.group(1) if match else None


def extract_session_id_from_page(html: str) -> str | None:
    """Extract session ID (FdrFJe) from page HTML."""
    match = SESSION_ID_PATTERN.search(html)
    return match.group(1) if match else None


def extract_build_label(html: str) -> str | None:
    """Extract the frontend build label (cfb2h) used as the ``bl`` URL param."""
    match = BUILD_LABEL_PATTERN.search(html)
    return match.group(1) if match else None


@dataclass(frozen=True)
class SessionCredentials:
    """Credentials required on every batchexecute call."""
    csrf_token: str
    session_id: str
    bl: str | None = None


class TokenManager:
    """Acquires and caches :class:`SessionCredentials` for one cookie jar."""

    def __init__(self, cookies: dict[str, str], timeout: float = 15.0):
        self.cookies = cookies
        self.timeout = timeout
        self._credentials: SessionCredentials | None = None

    @property
    def credentials(self) -> SessionCredentials | None:
        return self._credentials

    def ensure_credentials(self) -> SessionCredentials:
        """Return cached credentials, fetching them first if absent."""
        if self._credentials is None:
            return self.refresh()
        return self._credentials

    def invalidate(self) -> None:
        """Drop cached credentials so the next call re-fetches them."""
        if self._credentials is not None:
            logger.info("Session credentials invalidated")
        self._credentials = None

    def refresh(self) -> SessionCredentials:
        """
        Fetch the NotebookLM homepage and extract fresh credentials.

        Raises:
            AuthRequired: Cookies are expired (redirected to login)
            TransportError: The page fetch failed
            ProtocolDecodeError: The page no longer embeds the tokens
        """
        cookie_header = "; ".join(f"{k}={v}" for k, v in self.cookies.items())
        headers = {**PAGE_FETCH_HEADERS, "Cookie": cookie_header}

        try:
            with httpx.Client(headers=headers, follow_redirects=True, timeout=self.timeout) as client:
                response = client.get(constants.HOMEPAGE_URL)
        except httpx.HTTPError as e:
            raise TransportError(f"Failed to fetch NotebookLM page: {e}") from e

        # Check if redirected to login (cookies expired)
        if constants.LOGIN_HOST in str(response.url):
            raise AuthRequired("Not logged in to Google. Please sign in to NotebookLM first.")

        if response.status_code != 200:
            raise TransportError(
                f"Failed to fetch NotebookLM page: HTTP {response.status_code}",
                status=response.status_code,
            )

        html = response.text

        csrf_token = extract_csrf_from_page_source(html)
        if not csrf_token:
            raise ProtocolDecodeError(
                "CSRF token (SNlM0e) not found in NotebookLM page. "
                "The page structure may have changed."
            )

        session_id = extract_session_id_from_page(html)
        if not session_id:
            raise ProtocolDecodeError("Session ID (FdrFJe) not found in NotebookLM page.")

        self._credentials = SessionCredentials(
            csrf_token=csrf_token,
            session_id=session_id,
            bl=extract_build_label(html) or os.environ.get("NOTEBOOKLM_BL"),
        )
        logger.info("Session credentials fetched successfully")
        return self._credentials
