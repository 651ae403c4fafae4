from unittest.mock import MagicMock

import pytest

import notebooklm_pipeline.server as server
from notebooklm_pipeline.state import PipelineState

COOKIE_HEADER = "SID=a; HSID=b; SSID=c; APISID=d; SAPISID=e"


def tool_fn(tool):
    """Underlying function of a registered MCP tool."""
    return getattr(tool, "fn", tool)


@pytest.fixture
def fake_pipeline(monkeypatch):
    pipeline = MagicMock()
    pipeline.start_pipeline_from_file.return_value = PipelineState(status="running", step="wait_source")
    monkeypatch.setattr(server, "get_pipeline", lambda: pipeline)
    return pipeline


class TestPipelineStartFile:
    def test_passes_base64_through_for_validated_decoding(self, fake_pipeline):
        result = tool_fn(server.pipeline_start_file)(file_name="notes.pdf", file_data_base64="JVBERi0xLjQ=")

        assert result["status"] == "success"
        assert result["pipeline_status"] == "running"
        upload = fake_pipeline.start_pipeline_from_file.call_args.args[0]
        assert upload.filename == "notes.pdf"
        assert upload.file_data == "JVBERi0xLjQ="
        assert upload.mime_type == "application/pdf"

    def test_missing_payload(self, fake_pipeline):
        result = tool_fn(server.pipeline_start_file)(file_name="notes.pdf", file_data_base64="")

        assert result == {"status": "error", "error": "Missing file payload or filename"}
        fake_pipeline.start_pipeline_from_file.assert_not_called()


class TestSaveAuthCookies:
    @pytest.fixture(autouse=True)
    def home(self, tmp_path, monkeypatch):
        monkeypatch.setenv("NOTEBOOKLM_PIPELINE_HOME", str(tmp_path))
        return tmp_path

    def test_closes_previous_pipeline(self, monkeypatch, home):
        previous = MagicMock()
        monkeypatch.setattr(server, "_pipeline", previous)

        result = tool_fn(server.save_auth_cookies)(cookies=COOKIE_HEADER)

        assert result["status"] == "success"
        previous.close.assert_called_once()
        assert server._pipeline is None
        assert (home / "auth.json").exists()

    def test_incomplete_cookies_keep_pipeline(self, monkeypatch):
        previous = MagicMock()
        monkeypatch.setattr(server, "_pipeline", previous)

        result = tool_fn(server.save_auth_cookies)(cookies="SID=a")

        assert result["status"] == "error"
        previous.close.assert_not_called()
        assert server._pipeline is previous
