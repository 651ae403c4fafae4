"""NotebookLM domain operations (notebooklm.google.com).

Internal API. Every operation packages one or more batchexecute calls with
capability-specific parameter shaping and result interpretation. Parameter
positions are reverse-engineered; keep them verbatim.
"""

import base64
import json
import logging
import re
import time
from dataclasses import dataclass
from typing import Any, Callable

from . import constants
from .auth import TokenManager, resolve_cookies
from .errors import (
    AbortedByUser,
    ArtifactGenerationError,
    PhaseTimeout,
    ProtocolDecodeError,
    SourceProcessingError,
    TransportError,
)
from .extract import extract_id
from .rpc import RPCMethod
from .transport import SOURCE_ADD_TIMEOUT, RpcTransport

logger = logging.getLogger("notebooklm_pipeline.api")

# Project settings shared by create/add-source calls
_CLIENT_CONTEXT = [1, None, None, None, None, None, None, None, None, None, [1]]

_HEX_ID_PATTERN = re.compile(r"^[0-9a-f\-]{20,}$", re.IGNORECASE)


@dataclass
class Notebook:
    """Represents a NotebookLM notebook."""

    id: str | None
    title: str

    @property
    def url(self) -> str:
        return notebook_url(self.id)


@dataclass
class GenerationResult:
    """Normalized response of an artifact generation request."""

    task_id: str | None
    status: str  # in_progress | pending | completed | failed
    error: str | None = None


@dataclass
class ArtifactStatusInfo:
    """One entry of the batched artifact status listing."""

    task_id: str
    status: str
    type_code: int | None = None


def notebook_url(notebook_id: str | None) -> str:
    return f"{constants.BASE_URL}/notebook/{notebook_id}"


def artifact_status_from_code(status_code: Any, default: str = "in_progress") -> str:
    """Map an artifact status code to a task status string."""
    return constants.ARTIFACT_STATUS_NAMES.get(status_code, default)


def parse_generation_result(result: Any) -> GenerationResult:
    """Normalize a CREATE_ARTIFACT result into a task ID and status."""
    if not result or not isinstance(result, list):
        return GenerationResult(task_id=None, status="failed", error="No result from API")

    artifact_data = result[0] if isinstance(result[0], list) else result
    task_id = extract_id(artifact_data[0] if artifact_data else result) or extract_id(result)

    if not task_id:
        return GenerationResult(
            task_id=None,
            status="failed",
            error="Could not parse task ID from API response",
        )

    status_code = artifact_data[4] if len(artifact_data) > 4 else None
    return GenerationResult(task_id=str(task_id), status=artifact_status_from_code(status_code))


def normalize_binary_payload(file_data: Any) -> bytes:
    """Accept base64 text, bytes-like objects or a list of byte values."""
    if isinstance(file_data, str):
        try:
            return base64.b64decode(file_data, validate=True)
        except ValueError as e:
            raise ValueError(f"File payload is not valid base64: {e}") from e

    if isinstance(file_data, (bytes, bytearray, memoryview)):
        return bytes(file_data)

    if isinstance(file_data, list):
        return bytes(file_data)

    raise ValueError("Unsupported file payload type")


class NotebookLMClient:
    """Client for the NotebookLM internal API."""

    def __init__(self, transport: RpcTransport):
        self.transport = transport

    @classmethod
    def from_cookies(cls, cookies: dict[str, str] | None = None) -> "NotebookLMClient":
        """Build a client from explicit cookies or the configured cookie source."""
        token_manager = TokenManager(cookies if cookies is not None else resolve_cookies())
        return cls(RpcTransport(token_manager))

    def _call(self, method_id: str, params: Any, source_path: str = "/", allow_empty: bool = False, timeout: float | None = None) -> Any:
        return self.transport.call(method_id, params, source_path, allow_empty=allow_empty, timeout=timeout)

    def ensure_credentials(self) -> None:
        """Acquire session credentials (the pipeline's auth step)."""
        self.transport.token_manager.ensure_credentials()

    # =========================================================================
    # Notebook Operations
    # =========================================================================

    def create_notebook(self, title: str = "") -> Notebook:
        """Create a new notebook.

        The ID is extracted defensively. When none is found the returned
        notebook has ``id=None`` and the caller must check it.
        """
        params = [title, None, None, [2], [1]]
        result = self._call(RPCMethod.CREATE_NOTEBOOK, params)

        notebook_id = None
        if isinstance(result, list) and result:
            notebook_id = extract_id(result[0]) if isinstance(result[0], list) else None
        if not notebook_id:
            notebook_id = extract_id(result)

        if not notebook_id:
            logger.warning(f"Could not parse notebook ID from create response: {str(result)[:500]}")
        else:
            logger.info(f"Created notebook: {notebook_id}")

        return Notebook(id=notebook_id, title=title)

    def delete_notebook(self, notebook_id: str) -> bool:
        """Delete a notebook permanently.

        WARNING: This action is IRREVERSIBLE.
        """
        params = [[notebook_id], [2]]
        self._call(RPCMethod.DELETE_NOTEBOOK, params, allow_empty=True)
        logger.info(f"Deleted notebook: {notebook_id}")
        return True

    def _get_notebook_raw(self, notebook_id: str) -> Any:
        params = [notebook_id, None, [2], None, 0]
        return self._call(RPCMethod.GET_NOTEBOOK, params, f"/notebook/{notebook_id}")

    def get_notebook_title(self, notebook_id: str) -> str | None:
        """Fetch the auto-generated notebook title.

        Best effort: the title position is inferred, so several positions are
        tried. Returns None on any failure.
        """
        try:
            result = self._get_notebook_raw(notebook_id)
        except Exception as e:
            logger.warning(f"get_notebook_title failed: {e}")
            return None

        if not isinstance(result, list) or not result:
            return None

        # First non-trivial string that is neither a URL nor an ID
        candidates = result[0] if isinstance(result[0], list) else result
        for item in candidates:
            if (
                isinstance(item, str)
                and 1 < len(item) < 200
                and not item.startswith("http")
                and not _HEX_ID_PATTERN.match(item)
            ):
                return item

        nb_info = result[0]
        if isinstance(nb_info, list) and len(nb_info) > 2 and isinstance(nb_info[2], str) and nb_info[2]:
            return nb_info[2]
        return None

    # =========================================================================
    # Sources
    # =========================================================================

    def add_url_source(self, notebook_id: str, url: str) -> dict:
        """Add a URL (website or PDF link) as a source to a notebook.

        Returns:
            Dict with ``id`` (may be None if unparseable) and ``title``
        """
        params = [
            [[None, None, [url], None, None, None, None, None]],
            notebook_id,
            [2],
            None,
            None,
        ]
        result = self._call(
            RPCMethod.ADD_SOURCE, params, f"/notebook/{notebook_id}", timeout=SOURCE_ADD_TIMEOUT
        )

        # Response shape can drift over time
        source_id = extract_id(result)
        source_title = None
        if isinstance(result, list):
            if not source_id and result and isinstance(result[0], list) and result[0]:
                source_id = result[0][0][0] if isinstance(result[0][0], list) and result[0][0] else result[0][0]
            if len(result) > 1:
                source_title = result[1]

        logger.info(f"Added source: {source_id} ({source_title})")
        return {"id": source_id, "title": source_title}

    def register_file_source(self, notebook_id: str, filename: str) -> str:
        """Register a placeholder source for an upload and return its ID."""
        params = [
            [[filename]],
            notebook_id,
            [2],
            _CLIENT_CONTEXT,
        ]
        result = self._call(RPCMethod.ADD_SOURCE_FILE, params, f"/notebook/{notebook_id}", allow_empty=True)

        source_id = extract_id(result)
        if not source_id:
            raise SourceProcessingError("Failed to register file source - no source ID returned")
        return str(source_id)

    def start_resumable_upload(self, notebook_id: str, filename: str, file_size: int, source_id: str) -> str:
        """Open a resumable upload session and return its upload URL."""
        headers = {
            "Accept": "*/*",
            "Content-Type": "application/x-www-form-urlencoded;charset=UTF-8",
            "x-goog-authuser": "0",
            "x-goog-upload-command": "start",
            "x-goog-upload-header-content-length": str(file_size),
            "x-goog-upload-protocol": "resumable",
        }
        body = json.dumps({
            "PROJECT_ID": notebook_id,
            "SOURCE_NAME": filename,
            "SOURCE_ID": source_id,
        })
        response = self.transport.post_upload(f"{constants.UPLOAD_URL}?authuser=0", headers, body)

        if not response.is_success:
            raise TransportError(
                f"Failed to start file upload: HTTP {response.status_code} {response.reason_phrase}",
                status=response.status_code,
            )

        upload_url = response.headers.get("x-goog-upload-url")
        if not upload_url:
            raise ProtocolDecodeError("Failed to start file upload: upload URL missing in response")
        return upload_url

    def upload_file_bytes(self, upload_url: str, payload: bytes, mime_type: str = "application/pdf") -> None:
        """Upload the whole payload and finalize the session in one request."""
        headers = {
            "Accept": "*/*",
            "Content-Type": mime_type or "application/pdf",
            "x-goog-authuser": "0",
            "x-goog-upload-command": "upload, finalize",
            "x-goog-upload-offset": "0",
        }
        response = self.transport.post_upload(upload_url, headers, payload)
        if not response.is_success:
            raise TransportError(
                f"Failed to upload file bytes: HTTP {response.status_code} {response.reason_phrase}",
                status=response.status_code,
            )

    def add_file_source(self, notebook_id: str, filename: str, file_data: Any, mime_type: str = "application/pdf") -> dict:
        """Add a local file as a source via the three-step resumable upload.

        Any step failing raises immediately; partial uploads are not resumed.
        """
        if not filename:
            raise ValueError("Filename is required for file upload")

        payload = normalize_binary_payload(file_data)
        if not payload:
            raise ValueError("File payload is empty")

        source_id = self.register_file_source(notebook_id, filename)
        upload_url = self.start_resumable_upload(notebook_id, filename, len(payload), source_id)
        self.upload_file_bytes(upload_url, payload, mime_type)

        logger.info(f"Uploaded file source: {source_id} ({filename})")
        return {"id": source_id, "title": filename}

    def list_sources(self, notebook_id: str) -> list[dict]:
        """List sources of a notebook as ``{id, title, status, status_name}`` dicts."""
        result = self._get_notebook_raw(notebook_id)

        sources = []
        if not isinstance(result, list) or not result:
            return sources

        # Source structure: [[id], title, [metadata...], [null, status]]
        nb_info = result[0]
        if not (isinstance(nb_info, list) and len(nb_info) > 1 and isinstance(nb_info[1], list)):
            return sources

        for src in nb_info[1]:
            if not isinstance(src, list) or not src:
                continue
            raw_id = src[0][0] if isinstance(src[0], list) and src[0] else src[0]
            source_id = extract_id(raw_id) or extract_id(src) or raw_id
            title = src[1] if len(src) > 1 else None

            status = constants.SOURCE_STATUS_READY
            if len(src) > 3 and isinstance(src[3], list) and len(src[3]) > 1:
                status = src[3][1]

            sources.append({
                "id": str(source_id),
                "title": title,
                "status": status,
                "status_name": constants.SOURCE_STATUSES.get_name(status),
            })

        return sources

    def get_source_ids(self, notebook_id: str) -> list[str]:
        """Get all source IDs from a notebook."""
        return [s["id"] for s in self.list_sources(notebook_id)]

    def wait_for_source_ready(
        self,
        notebook_id: str,
        source_id: str,
        timeout: float = 120.0,
        interval: float = 5.0,
        should_abort: Callable[[], bool] | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> dict:
        """Block until a source is READY.

        For callers that may hold a long-lived loop. The cancellation predicate
        is checked before each listing and again before each wait.

        Raises:
            AbortedByUser: ``should_abort()`` returned True
            SourceProcessingError: The source reported an error
            PhaseTimeout: The source did not become ready in time
        """
        start = clock()
        requested = str(source_id)
        normalized_requested = extract_id(requested) or requested

        while clock() - start < timeout:
            if should_abort and should_abort():
                raise AbortedByUser()

            source = None
            for candidate in self.list_sources(notebook_id):
                current = str(candidate["id"])
                if current == requested or (extract_id(current) or current) == normalized_requested:
                    source = candidate
                    break

            if source is not None:
                if source["status"] == constants.SOURCE_STATUS_READY:
                    logger.info(f"Source {source_id} is READY")
                    return source
                if source["status"] == constants.SOURCE_STATUS_ERROR:
                    raise SourceProcessingError(f"Source {source_id} processing failed")
                logger.info(f"Source {source_id} status={constants.SOURCE_STATUSES.get_name(source['status'])}, waiting {interval}s...")
            else:
                logger.info(f"Source {source_id} not visible yet, waiting {interval}s...")

            if should_abort and should_abort():
                raise AbortedByUser()
            sleep(interval)

        raise PhaseTimeout("wait_source", f"Source {source_id} timed out after {timeout}s")

    # =========================================================================
    # Notes
    # =========================================================================

    def create_note(self, notebook_id: str, title: str = "New Note", content: str = "") -> dict:
        """Create a note and fill in its title and content."""
        create_params = [notebook_id, "", [1], None, "New Note"]
        create_result = self._call(RPCMethod.CREATE_NOTE, create_params, f"/notebook/{notebook_id}")

        note_id = None
        if isinstance(create_result, list) and create_result:
            first = create_result[0]
            if isinstance(first, list) and first:
                note_id = first[0]
            elif isinstance(first, str):
                note_id = first
        if not note_id:
            note_id = extract_id(create_result)
        if not note_id:
            raise ArtifactGenerationError("Note creation failed: no note ID returned")

        update_params = [
            notebook_id,
            str(note_id),
            [[[str(content or ""), str(title or ""), [], 0]]],
        ]
        self._call(RPCMethod.UPDATE_NOTE, update_params, f"/notebook/{notebook_id}", allow_empty=True)

        return {"id": str(note_id), "title": str(title or "")}

    # =========================================================================
    # Artifact Generation
    # =========================================================================

    def _create_artifact(self, notebook_id: str, content: list) -> GenerationResult:
        params = [[2], notebook_id, content]
        result = self._call(RPCMethod.CREATE_ARTIFACT, params, f"/notebook/{notebook_id}", allow_empty=True)
        return parse_generation_result(result)

    def _resolve_sources(self, notebook_id: str, source_ids: list[str] | None) -> list[str]:
        if source_ids is None:
            return self.get_source_ids(notebook_id)
        return source_ids

    def generate_audio(
        self,
        notebook_id: str,
        source_ids: list[str] | None = None,
        language: str = "en",
        length_code: int = constants.AUDIO_LENGTH_LONG,
        format_code: int | None = None,
        instructions: str | None = None,
    ) -> GenerationResult:
        """Request an Audio Overview. ``format_code=None`` means deep dive."""
        source_ids = self._resolve_sources(notebook_id, source_ids)

        # Build source IDs in the nested format: [[[id1]], [[id2]], ...]
        sources_nested = [[[sid]] for sid in source_ids]

        # Build source IDs in the simpler format: [[id1], [id2], ...]
        sources_simple = [[sid] for sid in source_ids]

        audio_options = [
            None,
            [
                instructions or None,
                length_code,
                None,
                sources_simple,
                language,
                None,
                format_code or None,
            ],
        ]

        content = [
            None, None,
            constants.ARTIFACT_TYPE_AUDIO,
            sources_nested,
            None, None,
            audio_options,  # position 6
        ]
        return self._create_artifact(notebook_id, content)

    def generate_video(
        self,
        notebook_id: str,
        source_ids: list[str] | None = None,
        format_code: int = constants.VIDEO_FORMAT_EXPLAINER,
        style_code: int = constants.VIDEO_STYLE_AUTO_SELECT,
        instructions: str | None = None,
        language: str = "en",
    ) -> GenerationResult:
        """Request a Video Overview."""
        source_ids = self._resolve_sources(notebook_id, source_ids)
        sources_nested = [[[sid]] for sid in source_ids]
        sources_simple = [[sid] for sid in source_ids]

        video_options = [
            None, None,
            [
                sources_simple,
                language,
                instructions or None,
                None,
                format_code or None,
                style_code or None,
            ],
        ]

        content = [
            None, None,
            constants.ARTIFACT_TYPE_VIDEO,
            sources_nested,
            None, None, None, None,
            video_options,  # position 8
        ]
        return self._create_artifact(notebook_id, content)

    def generate_report(
        self,
        notebook_id: str,
        source_ids: list[str] | None = None,
        report_format: str = constants.REPORT_FORMAT_STUDY_GUIDE,
        instructions: str | None = None,
        language: str = "en",
    ) -> GenerationResult:
        """Request a report (briefing doc, study guide, blog post or custom).

        Unknown formats fall back to the study guide.
        """
        source_ids = self._resolve_sources(notebook_id, source_ids)

        config = dict(constants.REPORT_FORMATS.get(report_format) or constants.REPORT_FORMATS[constants.REPORT_FORMAT_STUDY_GUIDE])
        if report_format == constants.REPORT_FORMAT_CUSTOM and instructions:
            config["prompt"] = instructions

        sources_nested = [[[sid]] for sid in source_ids]
        sources_simple = [[sid] for sid in source_ids]

        # Options at position 7: [null, [title, desc, null, sources, lang, prompt, null, True]]
        report_options = [
            None,
            [
                config["title"],
                config["description"],
                None,
                sources_simple,
                language,
                config["prompt"],
                None,
                True,
            ],
        ]

        content = [
            None, None,
            constants.ARTIFACT_TYPE_REPORT,
            sources_nested,
            None, None, None,
            report_options,
        ]
        return self._create_artifact(notebook_id, content)

    def generate_quiz(
        self,
        notebook_id: str,
        source_ids: list[str] | None = None,
        quantity_code: int = constants.QUIZ_QUANTITY_STANDARD,
        difficulty_code: int = constants.QUIZ_DIFFICULTY_MEDIUM,
        instructions: str | None = None,
    ) -> GenerationResult:
        """Request a quiz (artifact type 4, variant 2)."""
        source_ids = self._resolve_sources(notebook_id, source_ids)
        sources_nested = [[[sid]] for sid in source_ids]

        # Quiz options at position 9: [null, [2, null, prompt, null*4, [quantity, difficulty]]]
        quiz_options = [
            None,
            [
                constants.QUIZ_VARIANT_QUIZ,
                None,
                instructions or None,
                None, None, None, None,
                [quantity_code or None, difficulty_code or None],
            ],
        ]

        content = [
            None, None,
            constants.ARTIFACT_TYPE_QUIZ,
            sources_nested,
            None, None, None, None, None,
            quiz_options,
        ]
        return self._create_artifact(notebook_id, content)

    def generate_flashcards(
        self,
        notebook_id: str,
        source_ids: list[str] | None = None,
        quantity_code: int = constants.QUIZ_QUANTITY_STANDARD,
        difficulty_code: int = constants.QUIZ_DIFFICULTY_MEDIUM,
        instructions: str | None = None,
    ) -> GenerationResult:
        """Request flashcards (artifact type 4, variant 1).

        Differs from the quiz skeleton: one null fewer before the options
        tuple, and difficulty comes before quantity.
        """
        source_ids = self._resolve_sources(notebook_id, source_ids)
        sources_nested = [[[sid]] for sid in source_ids]

        flashcard_options = [
            None,
            [
                constants.QUIZ_VARIANT_FLASHCARDS,
                None,
                instructions or None,
                None, None, None,
                [difficulty_code or None, quantity_code or None],
            ],
        ]

        content = [
            None, None,
            constants.ARTIFACT_TYPE_QUIZ,
            sources_nested,
            None, None, None, None, None,
            flashcard_options,
        ]
        return self._create_artifact(notebook_id, content)

    def generate_infographic(
        self,
        notebook_id: str,
        source_ids: list[str] | None = None,
        language: str = "en",
        orientation_code: int = constants.INFOGRAPHIC_ORIENTATION_LANDSCAPE,
        detail_code: int = constants.INFOGRAPHIC_DETAIL_STANDARD,
        instructions: str | None = None,
    ) -> GenerationResult:
        """Request an infographic. Only ``en`` works reliably."""
        source_ids = self._resolve_sources(notebook_id, source_ids)
        sources_nested = [[[sid]] for sid in source_ids]

        # Options at position 14: [[prompt, language, null, orientation, detail]]
        infographic_options = [[instructions or None, language, None, orientation_code or None, detail_code or None]]

        content = [
            None, None,
            constants.ARTIFACT_TYPE_INFOGRAPHIC,
            sources_nested,
            None, None, None, None, None, None, None, None, None, None,  # positions 4-13
            infographic_options,
        ]
        return self._create_artifact(notebook_id, content)

    def generate_slide_deck(
        self,
        notebook_id: str,
        source_ids: list[str] | None = None,
        format_code: int = constants.SLIDE_DECK_FORMAT_DETAILED,
        length_code: int = constants.SLIDE_DECK_LENGTH_DEFAULT,
        instructions: str | None = None,
        language: str = "en",
    ) -> GenerationResult:
        """Request a slide deck."""
        source_ids = self._resolve_sources(notebook_id, source_ids)
        sources_nested = [[[sid]] for sid in source_ids]

        # Options at position 16: [[prompt, language, format, length]]
        slide_deck_options = [[instructions or None, language, format_code or None, length_code or None]]

        content = [
            None, None,
            constants.ARTIFACT_TYPE_SLIDE_DECK,
            sources_nested,
            None, None, None, None, None, None, None, None, None, None, None, None,  # positions 4-15
            slide_deck_options,
        ]
        return self._create_artifact(notebook_id, content)

    def generate_data_table(
        self,
        notebook_id: str,
        source_ids: list[str] | None = None,
        instructions: str | None = None,
        language: str = "en",
    ) -> GenerationResult:
        """Request a data table."""
        source_ids = self._resolve_sources(notebook_id, source_ids)
        sources_nested = [[[sid]] for sid in source_ids]

        # Options at position 18: [null, [prompt, language]]
        datatable_options = [None, [instructions or None, language]]

        content = [
            None, None,
            constants.ARTIFACT_TYPE_DATA_TABLE,
            sources_nested,
            None, None, None, None, None, None, None, None, None, None, None, None, None, None,  # positions 4-17
            datatable_options,
        ]
        return self._create_artifact(notebook_id, content)

    def generate_mind_map(self, notebook_id: str, source_ids: list[str] | None = None) -> GenerationResult:
        """Generate a mind map and save it as a note.

        Mind maps are synchronous: the JSON comes back directly, so the result
        is already ``completed`` and its task ID is the note ID.
        """
        source_ids = self._resolve_sources(notebook_id, source_ids)
        sources_nested = [[[sid]] for sid in source_ids]

        params = [
            sources_nested,
            None, None, None, None,
            ["interactive_mindmap", [["[CONTEXT]", ""]], ""],
            None,
            [2, None, [1]],
        ]
        result = self._call(RPCMethod.GENERATE_MIND_MAP, params, f"/notebook/{notebook_id}", allow_empty=True)

        # Response is nested: [[json_string, null, [gen_ids]]]
        mind_map_json = None
        if isinstance(result, list) and result and isinstance(result[0], list) and result[0]:
            mind_map_json = result[0][0]
        if mind_map_json is None:
            raise ArtifactGenerationError("Mind map generation returned no content")

        title = "Mind Map"
        content = mind_map_json
        if isinstance(mind_map_json, str):
            try:
                parsed = json.loads(mind_map_json)
            except json.JSONDecodeError:
                parsed = None
            if isinstance(parsed, dict) and isinstance(parsed.get("name"), str) and parsed["name"].strip():
                title = parsed["name"].strip()
        elif isinstance(mind_map_json, (dict, list)):
            if isinstance(mind_map_json, dict) and isinstance(mind_map_json.get("name"), str) and mind_map_json["name"].strip():
                title = mind_map_json["name"].strip()
            content = json.dumps(mind_map_json)
        else:
            content = str(mind_map_json)

        note = self.create_note(notebook_id, title, str(content))
        return GenerationResult(task_id=note["id"], status="completed")

    # =========================================================================
    # Artifact Status
    # =========================================================================

    def list_artifact_statuses(self, notebook_id: str) -> dict[str, ArtifactStatusInfo]:
        """Fetch the status of every artifact in a notebook in one call."""
        params = [[2], notebook_id, 'NOT artifact.status = "ARTIFACT_STATUS_SUGGESTED"']
        result = self._call(RPCMethod.LIST_ARTIFACTS, params, f"/notebook/{notebook_id}", allow_empty=True)

        statuses: dict[str, ArtifactStatusInfo] = {}
        if not isinstance(result, list) or not result:
            return statuses

        artifact_list = result[0] if isinstance(result[0], list) else result
        for artifact_data in artifact_list:
            if not isinstance(artifact_data, list) or not artifact_data:
                continue
            task_id = str(artifact_data[0])
            status_code = artifact_data[4] if len(artifact_data) > 4 else None
            type_code = artifact_data[2] if len(artifact_data) > 2 else None
            statuses[task_id] = ArtifactStatusInfo(
                task_id=task_id,
                status=artifact_status_from_code(status_code, default="unknown"),
                type_code=type_code,
            )

        return statuses

    def poll_artifact_status(self, notebook_id: str, task_id: str) -> ArtifactStatusInfo:
        """Status of one artifact; ``pending`` when it is not listed yet."""
        statuses = self.list_artifact_statuses(notebook_id)
        return statuses.get(str(task_id), ArtifactStatusInfo(task_id=str(task_id), status="pending"))

    def wait_for_artifact(
        self,
        notebook_id: str,
        task_id: str,
        timeout: float = 600.0,
        interval: float = 15.0,
        should_abort: Callable[[], bool] | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> ArtifactStatusInfo:
        """Block until one artifact completes.

        Raises:
            AbortedByUser: ``should_abort()`` returned True
            ArtifactGenerationError: The artifact failed
            PhaseTimeout: It did not finish in time
        """
        start = clock()
        while clock() - start < timeout:
            if should_abort and should_abort():
                raise AbortedByUser()

            status = self.poll_artifact_status(notebook_id, task_id)
            if status.status == "completed":
                logger.info(f"Artifact {task_id} completed")
                return status
            if status.status == "failed":
                raise ArtifactGenerationError(f"Artifact {task_id} generation failed")

            logger.info(f"Artifact {task_id} status={status.status}, waiting {interval}s...")
            if should_abort and should_abort():
                raise AbortedByUser()
            sleep(interval)

        raise PhaseTimeout("wait_artifacts", f"Artifact {task_id} timed out after {timeout}s")

    def close(self) -> None:
        """Close the HTTP client."""
        self.transport.close()
