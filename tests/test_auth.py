import json
from unittest.mock import patch

import httpx
import pytest

from notebooklm_pipeline import auth, constants
from notebooklm_pipeline.errors import AuthRequired, ProtocolDecodeError, TransportError

PAGE_HTML = """
<script>window.WIZ_global_data = {"SNlM0e": "csrf_abc:123", "FdrFJe" : "-4567890123", "cfb2h":"boq_labs_20260101"};</script>
"""


def page_response(html=PAGE_HTML, url=constants.HOMEPAGE_URL, status=200):
    return httpx.Response(status, text=html, request=httpx.Request("GET", url))


@pytest.fixture
def home(tmp_path, monkeypatch):
    monkeypatch.setenv("NOTEBOOKLM_PIPELINE_HOME", str(tmp_path))
    monkeypatch.delenv("NOTEBOOKLM_COOKIES", raising=False)
    return tmp_path


class TestTokenManager:
    def test_refresh_extracts_credentials(self):
        with patch("httpx.Client") as MockClient:
            MockClient.return_value.__enter__.return_value.get.return_value = page_response()

            manager = auth.TokenManager({"SID": "x"})
            credentials = manager.ensure_credentials()

        assert credentials == auth.SessionCredentials("csrf_abc:123", "-4567890123", "boq_labs_20260101")

    def test_credentials_are_cached_until_invalidated(self):
        with patch("httpx.Client") as MockClient:
            get = MockClient.return_value.__enter__.return_value.get
            get.return_value = page_response()

            manager = auth.TokenManager({"SID": "x"})
            manager.ensure_credentials()
            manager.ensure_credentials()
            assert get.call_count == 1

            manager.invalidate()
            assert manager.credentials is None
            manager.ensure_credentials()
            assert get.call_count == 2

    def test_login_redirect_raises_auth_required(self):
        with patch("httpx.Client") as MockClient:
            MockClient.return_value.__enter__.return_value.get.return_value = page_response(
                html="<html>Sign in</html>",
                url="https://accounts.google.com/ServiceLogin?continue=https://notebooklm.google.com/",
            )

            with pytest.raises(AuthRequired):
                auth.TokenManager({"SID": "x"}).refresh()

    def test_missing_csrf_raises_decode_error(self):
        with patch("httpx.Client") as MockClient:
            MockClient.return_value.__enter__.return_value.get.return_value = page_response(
                html='{"FdrFJe":"123"}'
            )

            with pytest.raises(ProtocolDecodeError, match="SNlM0e"):
                auth.TokenManager({"SID": "x"}).refresh()

    def test_missing_session_id_raises_decode_error(self):
        with patch("httpx.Client") as MockClient:
            MockClient.return_value.__enter__.return_value.get.return_value = page_response(
                html='{"SNlM0e":"tok"}'
            )

            with pytest.raises(ProtocolDecodeError, match="FdrFJe"):
                auth.TokenManager({"SID": "x"}).refresh()

    def test_http_failure_raises_transport_error(self):
        with patch("httpx.Client") as MockClient:
            MockClient.return_value.__enter__.return_value.get.return_value = page_response(status=500)

            with pytest.raises(TransportError) as exc_info:
                auth.TokenManager({"SID": "x"}).refresh()

        assert exc_info.value.status == 500

    def test_network_failure_raises_transport_error(self):
        with patch("httpx.Client") as MockClient:
            MockClient.return_value.__enter__.return_value.get.side_effect = httpx.ConnectError("boom")

            with pytest.raises(TransportError):
                auth.TokenManager({"SID": "x"}).refresh()


class TestCookies:
    def test_parse_cookie_header(self):
        cookies = auth.parse_cookie_header("SID=a; HSID=b=c ; junk; SSID=d")

        assert cookies == {"SID": "a", "HSID": "b=c", "SSID": "d"}

    def test_validate_cookies(self):
        assert auth.validate_cookies({k: "v" for k in auth.REQUIRED_COOKIES})
        assert not auth.validate_cookies({"SID": "v"})

    def test_resolve_prefers_environment(self, home, monkeypatch):
        monkeypatch.setenv("NOTEBOOKLM_COOKIES", "SID=env")

        assert auth.resolve_cookies() == {"SID": "env"}

    def test_resolve_falls_back_to_cache(self, home):
        path = auth.save_cookies_to_cache(auth.AuthCookies(cookies={"SID": "cached"}, extracted_at=1.0))

        assert path == home / "auth.json"
        assert auth.resolve_cookies() == {"SID": "cached"}

    def test_resolve_without_cookies_raises(self, home):
        with pytest.raises(AuthRequired):
            auth.resolve_cookies()

    def test_corrupt_cache_is_ignored(self, home):
        (home / "auth.json").write_text("{broken")

        assert auth.load_cached_cookies() is None

    def test_cache_format(self, home):
        auth.save_cookies_to_cache(auth.AuthCookies(cookies={"SID": "a"}, extracted_at=42.0))

        assert json.loads((home / "auth.json").read_text()) == {"cookies": {"SID": "a"}, "extracted_at": 42.0}
