"""HTTP transport for batchexecute calls."""

import logging
from typing import Any

import httpx

from . import constants, rpc
from .auth import TokenManager
from .errors import AuthExpired, TransportError

logger = logging.getLogger("notebooklm_pipeline.api")

# Timeout configuration (seconds)
DEFAULT_TIMEOUT = 30.0
SOURCE_ADD_TIMEOUT = 120.0  # Extended timeout for source operations and uploads


class RpcTransport:
    """Issues batchexecute calls with session credentials attached.

    Credentials come from the :class:`TokenManager`. On HTTP 401/403 the
    manager is invalidated and :class:`AuthExpired` is raised; retrying is
    the caller's decision.
    """

    def __init__(self, token_manager: TokenManager, timeout: float = DEFAULT_TIMEOUT):
        self.token_manager = token_manager
        self.timeout = timeout
        self._client: httpx.Client | None = None

    @property
    def cookies(self) -> dict[str, str]:
        return self.token_manager.cookies

    def _get_client(self) -> httpx.Client:
        """Get or create HTTP client."""
        if self._client is None:
            cookie_str = "; ".join(f"{k}={v}" for k, v in self.cookies.items())

            self._client = httpx.Client(
                headers={
                    "Origin": constants.BASE_URL,
                    "Referer": f"{constants.BASE_URL}/",
                    "Cookie": cookie_str,
                    "X-Same-Domain": "1",
                    "User-Agent": "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36",
                },
                timeout=self.timeout,
            )
        return self._client

    def _log_request(self, method_id: str, url: str, body: str) -> None:
        method_name = rpc.RPC_NAMES.get(method_id, "unknown")
        logger.debug("=" * 70)
        logger.debug(f"RPC Call: {method_id} ({method_name})")
        logger.debug("-" * 70)
        logger.debug("URL Parameters:")
        for key, value in rpc.parse_url_params(url).items():
            logger.debug(f"  {key}: {value}")
        logger.debug("-" * 70)
        logger.debug("Request Params:")
        decoded_body = rpc.decode_request_body(body)
        logger.debug(rpc.format_debug_json(decoded_body.get("params", decoded_body)))

    def _auth_rejected(self, message: str) -> AuthExpired:
        self.token_manager.invalidate()
        self.close()
        return AuthExpired(message)

    def call(
        self,
        method_id: str,
        params: Any,
        source_path: str = "/",
        allow_empty: bool = False,
        timeout: float | None = None,
    ) -> Any:
        """Execute an RPC call and return the decoded result.

        Raises:
            AuthRequired / ProtocolDecodeError: Credential acquisition failed
            AuthExpired: HTTP 401/403 or RPC Error 16
            TransportError: Other HTTP failures
            RpcError / RateLimited / NoResult: From the decoder
        """
        credentials = self.token_manager.ensure_credentials()
        body = rpc.build_request_body(method_id, params, credentials.csrf_token)
        url = rpc.build_url(method_id, source_path, credentials.session_id, credentials.bl)

        if logger.isEnabledFor(logging.DEBUG):
            self._log_request(method_id, url, body)

        try:
            response = self._get_client().post(
                url,
                content=body,
                headers={"Content-Type": "application/x-www-form-urlencoded;charset=UTF-8"},
                timeout=timeout or self.timeout,
            )
        except httpx.HTTPError as e:
            raise TransportError(f"RPC {method_id} failed: {e}") from e

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("-" * 70)
            logger.debug(f"Response Status: {response.status_code}")
            if response.status_code >= 400:
                logger.debug("Error Response Body:")
                logger.debug(response.text[:2000])

        if response.status_code in (401, 403):
            raise self._auth_rejected("Authentication expired. Credentials will be re-fetched on the next call.")

        if not response.is_success:
            raise TransportError(
                f"HTTP {response.status_code}: {response.reason_phrase}",
                status=response.status_code,
            )

        try:
            result = rpc.decode_response(response.text, method_id, allow_empty=allow_empty)
        except AuthExpired as e:
            raise self._auth_rejected(str(e)) from e

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("-" * 70)
            logger.debug("Response Data:")
            logger.debug(rpc.format_debug_json(result))
            logger.debug("=" * 70)

        return result

    def post_upload(self, url: str, headers: dict[str, str], content: bytes | str, timeout: float | None = None) -> httpx.Response:
        """POST to the resumable upload endpoint with the session cookies."""
        try:
            return self._get_client().post(
                url,
                content=content,
                headers=headers,
                timeout=timeout or SOURCE_ADD_TIMEOUT,
            )
        except httpx.HTTPError as e:
            raise TransportError(f"Upload request failed: {e}") from e

    def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            self._client.close()
            self._client = None
