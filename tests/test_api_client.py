import base64
import json
from unittest.mock import MagicMock

import httpx
import pytest

from notebooklm_pipeline import constants
from notebooklm_pipeline.api_client import (
    GenerationResult,
    NotebookLMClient,
    normalize_binary_payload,
    parse_generation_result,
)
from notebooklm_pipeline.errors import (
    AbortedByUser,
    ArtifactGenerationError,
    PhaseTimeout,
    ProtocolDecodeError,
    SourceProcessingError,
    TransportError,
)
from notebooklm_pipeline.rpc import RPCMethod
from notebooklm_pipeline.transport import SOURCE_ADD_TIMEOUT, RpcTransport

NB = "nb_abcdef123456"


@pytest.fixture
def transport():
    return MagicMock(spec=RpcTransport)


@pytest.fixture
def client(transport):
    return NotebookLMClient(transport)


class SteppingClock:
    """Monotonic clock that only moves when slept on."""

    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.now += seconds


def sent_content(transport):
    """Artifact content tuple of the last CREATE_ARTIFACT call."""
    args, _ = transport.call.call_args
    assert args[0] == RPCMethod.CREATE_ARTIFACT
    assert args[1][:2] == [[2], NB]
    assert args[2] == f"/notebook/{NB}"
    return args[1][2]


class TestNotebooks:
    def test_create_notebook(self, client, transport):
        transport.call.return_value = ["", None, "7c3d8a21-1b2c-4d5e-9f00-123456789abc"]

        notebook = client.create_notebook("")

        transport.call.assert_called_once_with(
            RPCMethod.CREATE_NOTEBOOK, ["", None, None, [2], [1]], "/", allow_empty=False, timeout=None
        )
        assert notebook.id == "7c3d8a21-1b2c-4d5e-9f00-123456789abc"
        assert notebook.url == "https://notebooklm.google.com/notebook/7c3d8a21-1b2c-4d5e-9f00-123456789abc"

    def test_create_notebook_without_id_does_not_raise(self, client, transport):
        transport.call.return_value = ["", None, "short"]

        assert client.create_notebook("").id is None

    def test_delete_notebook_allows_empty(self, client, transport):
        transport.call.return_value = None

        assert client.delete_notebook(NB) is True
        transport.call.assert_called_once_with(
            RPCMethod.DELETE_NOTEBOOK, [[NB], [2]], "/", allow_empty=True, timeout=None
        )

    def test_get_notebook_title(self, client, transport):
        transport.call.return_value = [["Attention Is All You Need", [], "7c3d8a21-1b2c-4d5e-9f00-123456789abc"]]

        assert client.get_notebook_title(NB) == "Attention Is All You Need"

    def test_get_notebook_title_skips_urls_and_ids(self, client, transport):
        transport.call.return_value = [["https://example.com/a.pdf", [], "7c3d8a21-1b2c-4d5e-9f00-123456789abc", "Real title"]]

        assert client.get_notebook_title(NB) == "Real title"

    def test_get_notebook_title_is_best_effort(self, client, transport):
        transport.call.side_effect = TransportError("HTTP 500", status=500)

        assert client.get_notebook_title(NB) is None

    def test_get_notebook_title_swallows_unexpected_errors(self, client, transport):
        transport.call.side_effect = KeyError("payload")

        assert client.get_notebook_title(NB) is None


class TestSources:
    def test_add_url_source(self, client, transport):
        transport.call.return_value = [[[["src_abcdef123456"], "paper.pdf"]]]

        source = client.add_url_source(NB, "https://example.com/paper.pdf")

        assert source["id"] == "src_abcdef123456"
        transport.call.assert_called_once_with(
            RPCMethod.ADD_SOURCE,
            [[[None, None, ["https://example.com/paper.pdf"], None, None, None, None, None]], NB, [2], None, None],
            f"/notebook/{NB}",
            allow_empty=False,
            timeout=SOURCE_ADD_TIMEOUT,
        )

    def test_list_sources(self, client, transport):
        transport.call.return_value = [[
            "Notebook",
            [
                [["src_ready_0001"], "a.pdf", [None], [None, 2]],
                [["src_proc_00002"], "b.pdf", [None], [None, 1]],
                [["src_nostat_003"], "c.pdf"],
            ],
            NB,
        ]]

        sources = client.list_sources(NB)

        assert sources == [
            {"id": "src_ready_0001", "title": "a.pdf", "status": constants.SOURCE_STATUS_READY, "status_name": "ready"},
            {"id": "src_proc_00002", "title": "b.pdf", "status": constants.SOURCE_STATUS_PROCESSING, "status_name": "processing"},
            {"id": "src_nostat_003", "title": "c.pdf", "status": constants.SOURCE_STATUS_READY, "status_name": "ready"},
        ]
        args, _ = transport.call.call_args
        assert args[:3] == (RPCMethod.GET_NOTEBOOK, [NB, None, [2], None, 0], f"/notebook/{NB}")

    def test_list_sources_unexpected_shape(self, client, transport):
        transport.call.return_value = [None]

        assert client.list_sources(NB) == []

    def test_add_file_source(self, client, transport):
        transport.call.return_value = [[[["file_src_0001"]]]]
        transport.post_upload.side_effect = [
            httpx.Response(200, headers={"x-goog-upload-url": "https://upload.example/session/1"}),
            httpx.Response(200),
        ]
        payload = b"%PDF-1.7 test"

        source = client.add_file_source(NB, "paper.pdf", base64.b64encode(payload).decode())

        assert source == {"id": "file_src_0001", "title": "paper.pdf"}

        register_args, register_kwargs = transport.call.call_args
        assert register_args[0] == RPCMethod.ADD_SOURCE_FILE
        assert register_args[1] == [[["paper.pdf"]], NB, [2], [1, None, None, None, None, None, None, None, None, None, [1]]]
        assert register_kwargs["allow_empty"] is True

        start_call, upload_call = transport.post_upload.call_args_list
        url, headers, body = start_call.args
        assert url == f"{constants.UPLOAD_URL}?authuser=0"
        assert headers["x-goog-upload-command"] == "start"
        assert headers["x-goog-upload-header-content-length"] == str(len(payload))
        assert headers["x-goog-upload-protocol"] == "resumable"
        assert json.loads(body) == {"PROJECT_ID": NB, "SOURCE_NAME": "paper.pdf", "SOURCE_ID": "file_src_0001"}

        url, headers, body = upload_call.args
        assert url == "https://upload.example/session/1"
        assert headers["x-goog-upload-command"] == "upload, finalize"
        assert headers["x-goog-upload-offset"] == "0"
        assert body == payload

    def test_add_file_source_missing_upload_url(self, client, transport):
        transport.call.return_value = [[[["file_src_0001"]]]]
        transport.post_upload.return_value = httpx.Response(200)

        with pytest.raises(ProtocolDecodeError):
            client.add_file_source(NB, "paper.pdf", b"%PDF")

    def test_add_file_source_upload_failure(self, client, transport):
        transport.call.return_value = [[[["file_src_0001"]]]]
        transport.post_upload.side_effect = [
            httpx.Response(200, headers={"x-goog-upload-url": "https://upload.example/session/1"}),
            httpx.Response(503),
        ]

        with pytest.raises(TransportError) as exc_info:
            client.add_file_source(NB, "paper.pdf", b"%PDF")
        assert exc_info.value.status == 503

    def test_register_without_id_raises(self, client, transport):
        transport.call.return_value = None

        with pytest.raises(SourceProcessingError):
            client.add_file_source(NB, "paper.pdf", b"%PDF")

    @pytest.mark.parametrize("filename,data", [("", b"%PDF"), ("paper.pdf", b""), ("paper.pdf", "")])
    def test_add_file_source_rejects_empty_input(self, client, transport, filename, data):
        with pytest.raises(ValueError):
            client.add_file_source(NB, filename, data)
        transport.call.assert_not_called()

    def test_add_file_source_rejects_corrupt_base64(self, client, transport):
        with pytest.raises(ValueError, match="not valid base64"):
            client.add_file_source(NB, "paper.pdf", "JVBERi0x*LjQ=")
        transport.call.assert_not_called()
        transport.post_upload.assert_not_called()


class TestWaitForSourceReady:
    def _sources(self, status):
        return [[None, [[["src_abcdef123456"], "a.pdf", [None], [None, status]]]]]

    def test_returns_when_ready(self, client, transport):
        transport.call.side_effect = [self._sources(1), self._sources(2)]
        sleep = MagicMock()

        source = client.wait_for_source_ready(NB, "src_abcdef123456", interval=5, sleep=sleep)

        assert source["status"] == constants.SOURCE_STATUS_READY
        sleep.assert_called_once_with(5)

    def test_error_status_raises(self, client, transport):
        transport.call.return_value = self._sources(3)

        with pytest.raises(SourceProcessingError):
            client.wait_for_source_ready(NB, "src_abcdef123456", sleep=MagicMock())

    def test_abort_predicate_checked_before_listing(self, client, transport):
        with pytest.raises(AbortedByUser):
            client.wait_for_source_ready(NB, "src_abcdef123456", should_abort=lambda: True, sleep=MagicMock())
        transport.call.assert_not_called()

    def test_abort_predicate_checked_before_waiting(self, client, transport):
        transport.call.return_value = self._sources(1)
        answers = iter([False, True])
        sleep = MagicMock()

        with pytest.raises(AbortedByUser):
            client.wait_for_source_ready(NB, "src_abcdef123456", should_abort=lambda: next(answers), sleep=sleep)
        sleep.assert_not_called()

    def test_timeout(self, client, transport):
        with pytest.raises(PhaseTimeout) as exc_info:
            client.wait_for_source_ready(NB, "src_abcdef123456", timeout=0, sleep=MagicMock())
        assert exc_info.value.phase == "wait_source"

    def test_timeout_counts_polls_on_injected_clock(self, client, transport):
        transport.call.return_value = self._sources(1)
        clock = SteppingClock()

        with pytest.raises(PhaseTimeout):
            client.wait_for_source_ready(NB, "src_abcdef123456", timeout=30, interval=10, sleep=clock.sleep, clock=clock)

        assert transport.call.call_count == 3
        assert clock.now == 30


class TestGenerationResult:
    @pytest.mark.parametrize("code,status", [
        (1, "in_progress"),
        (2, "pending"),
        (3, "completed"),
        (4, "failed"),
        (99, "in_progress"),
        (None, "in_progress"),
    ])
    def test_status_mapping(self, code, status):
        result = parse_generation_result([["task_abc12345", "Audio", 1, None, code]])

        assert result == GenerationResult(task_id="task_abc12345", status=status)

    def test_short_artifact_record(self):
        assert parse_generation_result([["task_abc12345"]]).status == "in_progress"

    def test_empty_result(self):
        result = parse_generation_result(None)

        assert result.status == "failed"
        assert result.error == "No result from API"

    def test_missing_task_id(self):
        result = parse_generation_result([[None, None, 1]])

        assert result.task_id is None
        assert result.status == "failed"


class TestArtifactSkeletons:
    """Positional layouts must stay byte-compatible with the web client."""

    def test_audio(self, client, transport):
        transport.call.return_value = [["task_audio_001", None, 1, None, 1]]

        result = client.generate_audio(NB, ["s1"], language="en", length_code=3, format_code=1, instructions="Focus")

        assert result == GenerationResult(task_id="task_audio_001", status="in_progress")
        assert sent_content(transport) == [
            None, None, 1, [[["s1"]]], None, None,
            [None, ["Focus", 3, None, [["s1"]], "en", None, 1]],
        ]

    def test_audio_default_format_is_null(self, client, transport):
        transport.call.return_value = [["task_audio_001", None, 1, None, 1]]

        client.generate_audio(NB, ["s1"], format_code=None)

        assert sent_content(transport)[6][1][6] is None

    def test_video(self, client, transport):
        transport.call.return_value = [["task_video_001", None, 3, None, 1]]

        client.generate_video(NB, ["s1"], format_code=1, style_code=4, instructions=None, language="de")

        assert sent_content(transport) == [
            None, None, 3, [[["s1"]]], None, None, None, None,
            [None, None, [[["s1"]], "de", None, None, 1, 4]],
        ]

    def test_report_custom_prompt(self, client, transport):
        transport.call.return_value = [["task_report_01", None, 2, None, 1]]

        client.generate_report(NB, ["s1"], report_format="custom", instructions="Summarize methods")

        content = sent_content(transport)
        assert content[:7] == [None, None, 2, [[["s1"]]], None, None, None]
        assert content[7] == [
            None,
            ["Custom Report", "Custom format", None, [["s1"]], "en", "Summarize methods", None, True],
        ]

    def test_report_unknown_format_falls_back_to_study_guide(self, client, transport):
        transport.call.return_value = [["task_report_01", None, 2, None, 1]]

        client.generate_report(NB, ["s1"], report_format="unknown")

        assert sent_content(transport)[7][1][0] == "Study Guide"

    def test_quiz(self, client, transport):
        transport.call.return_value = [["task_quiz_0001", None, 4, None, 1]]

        client.generate_quiz(NB, ["s1"], quantity_code=1, difficulty_code=3)

        assert sent_content(transport) == [
            None, None, 4, [[["s1"]]], None, None, None, None, None,
            [None, [2, None, None, None, None, None, None, [1, 3]]],
        ]

    def test_flashcards(self, client, transport):
        transport.call.return_value = [["task_cards_001", None, 4, None, 1]]

        client.generate_flashcards(NB, ["s1"], quantity_code=1, difficulty_code=3, instructions="Terms")

        assert sent_content(transport) == [
            None, None, 4, [[["s1"]]], None, None, None, None, None,
            [None, [1, None, "Terms", None, None, None, [3, 1]]],
        ]

    def test_infographic(self, client, transport):
        transport.call.return_value = [["task_info_0001", None, 7, None, 1]]

        client.generate_infographic(NB, ["s1"], orientation_code=2, detail_code=3)

        content = sent_content(transport)
        assert len(content) == 15
        assert content[:4] == [None, None, 7, [[["s1"]]]]
        assert content[4:14] == [None] * 10
        assert content[14] == [[None, "en", None, 2, 3]]

    def test_slide_deck(self, client, transport):
        transport.call.return_value = [["task_slides_01", None, 8, None, 1]]

        client.generate_slide_deck(NB, ["s1"], format_code=2, length_code=2, instructions="Ten slides")

        content = sent_content(transport)
        assert len(content) == 17
        assert content[4:16] == [None] * 12
        assert content[16] == [["Ten slides", "en", 2, 2]]

    def test_data_table(self, client, transport):
        transport.call.return_value = [["task_table_001", None, 9, None, 1]]

        client.generate_data_table(NB, ["s1"], instructions="Compare results")

        content = sent_content(transport)
        assert len(content) == 19
        assert content[4:18] == [None] * 14
        assert content[18] == [None, ["Compare results", "en"]]

    def test_source_ids_default_to_all_sources(self, client, transport):
        transport.call.side_effect = [
            [[None, [[["src_one_000001"], "a"], [["src_two_000002"], "b"]]]],
            [["task_audio_001", None, 1, None, 1]],
        ]

        client.generate_audio(NB)

        assert sent_content(transport)[3] == [[["src_one_000001"]], [["src_two_000002"]]]

    def test_rejected_generation_reports_failed(self, client, transport):
        transport.call.return_value = None

        result = client.generate_video(NB, ["s1"])

        assert result.status == "failed"


class TestMindMap:
    def test_mind_map_is_saved_as_completed_note(self, client, transport):
        mind_map = json.dumps({"name": "Transformers", "children": []})
        transport.call.side_effect = [
            [[mind_map, None, ["gen_1"]]],
            [["note_abcdef123"]],
            None,
        ]

        result = client.generate_mind_map(NB, ["s1"])

        assert result == GenerationResult(task_id="note_abcdef123", status="completed")

        generate_call, create_call, update_call = transport.call.call_args_list
        assert generate_call.args[0] == RPCMethod.GENERATE_MIND_MAP
        assert generate_call.args[1] == [
            [[["s1"]]], None, None, None, None,
            ["interactive_mindmap", [["[CONTEXT]", ""]], ""],
            None,
            [2, None, [1]],
        ]
        assert create_call.args[1] == [NB, "", [1], None, "New Note"]
        assert update_call.args[1] == [NB, "note_abcdef123", [[[mind_map, "Transformers", [], 0]]]]

    def test_untitled_mind_map(self, client, transport):
        transport.call.side_effect = [[["{}", None]], [["note_abcdef123"]], None]

        client.generate_mind_map(NB, ["s1"])

        assert transport.call.call_args_list[2].args[1][2][0][0][1] == "Mind Map"

    def test_empty_mind_map_raises(self, client, transport):
        transport.call.return_value = None

        with pytest.raises(ArtifactGenerationError):
            client.generate_mind_map(NB, ["s1"])


class TestArtifactStatuses:
    def test_list_artifact_statuses(self, client, transport):
        transport.call.return_value = [[
            ["art_audio_001", "Audio", 1, None, 3],
            ["art_info_0002", "Infographic", 7, None, 1],
            ["art_odd_00003", "Report", 2, None, 9],
        ]]

        statuses = client.list_artifact_statuses(NB)

        assert statuses["art_audio_001"].status == "completed"
        assert statuses["art_audio_001"].type_code == 1
        assert statuses["art_info_0002"].status == "in_progress"
        assert statuses["art_odd_00003"].status == "unknown"

        args, kwargs = transport.call.call_args
        assert args[1] == [[2], NB, 'NOT artifact.status = "ARTIFACT_STATUS_SUGGESTED"']
        assert kwargs["allow_empty"] is True

    def test_empty_listing(self, client, transport):
        transport.call.return_value = None

        assert client.list_artifact_statuses(NB) == {}

    def test_unlisted_artifact_is_pending(self, client, transport):
        transport.call.return_value = [[]]

        assert client.poll_artifact_status(NB, "art_missing_01").status == "pending"

    def test_wait_for_artifact_failure(self, client, transport):
        transport.call.return_value = [[["art_audio_001", "Audio", 1, None, 4]]]

        with pytest.raises(ArtifactGenerationError):
            client.wait_for_artifact(NB, "art_audio_001", sleep=MagicMock())

    def test_wait_for_artifact_times_out_on_injected_clock(self, client, transport):
        transport.call.return_value = [[["art_audio_001", "Audio", 1, None, 1]]]
        clock = SteppingClock()

        with pytest.raises(PhaseTimeout) as exc_info:
            client.wait_for_artifact(NB, "art_audio_001", timeout=45, interval=15, sleep=clock.sleep, clock=clock)

        assert exc_info.value.phase == "wait_artifacts"
        assert transport.call.call_count == 3

    def test_wait_for_artifact_completes(self, client, transport):
        transport.call.side_effect = [
            [[["art_audio_001", "Audio", 1, None, 1]]],
            [[["art_audio_001", "Audio", 1, None, 3]]],
        ]
        clock = SteppingClock()

        status = client.wait_for_artifact(NB, "art_audio_001", interval=15, sleep=clock.sleep, clock=clock)

        assert status.status == "completed"
        assert clock.now == 15


class TestNormalizeBinaryPayload:
    def test_accepted_shapes(self):
        assert normalize_binary_payload(b"abc") == b"abc"
        assert normalize_binary_payload(bytearray(b"abc")) == b"abc"
        assert normalize_binary_payload(memoryview(b"abc")) == b"abc"
        assert normalize_binary_payload([97, 98, 99]) == b"abc"
        assert normalize_binary_payload(base64.b64encode(b"abc").decode()) == b"abc"

    def test_invalid_base64(self):
        with pytest.raises(ValueError):
            normalize_binary_payload("not base64!!")

    def test_unsupported_type(self):
        with pytest.raises(ValueError):
            normalize_binary_payload(3.14)
