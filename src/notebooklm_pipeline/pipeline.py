"""Tick-driven pipeline: source → notebook → artifacts.

Steps:
1. Authenticate (CSRF + session tokens)          -- eager, in the start command
2. Create notebook                               -- eager
3. Add source (URL, or file upload)              -- eager
4. [TICK] wait_source: poll ingestion until ready (source timeout)
5.        On ready: request every enabled artifact with a pause between starts
6. [TICK] wait_artifacts: poll all artifact statuses in one call (artifact timeout)
7. Completion side effects (chime, notification, auto-open)

The process may exit between any two ticks. Everything a tick needs is in
the :class:`StateStore`, and every commit is guarded: it applies only if the
record still belongs to the same run (``started_at``) and the same step. A
tick that raced an abort or a new start therefore writes nothing.
"""

import logging
import re
import time
import urllib.parse
from dataclasses import dataclass, replace
from datetime import datetime
from functools import partial
from pathlib import Path
from typing import Any, Callable

import httpx

from . import constants
from .api_client import NotebookLMClient, notebook_url
from .auth import get_home_dir
from .errors import NotebookLMError, ProtocolDecodeError, SourceProcessingError, TransportError
from .hooks import CompletionHooks, LoggingHooks, fire_hook
from .scheduler import FileWakeScheduler, WakeScheduler
from .settings import PipelineConfig, PipelineSettings, load_settings
from .state import (
    STATUS_COMPLETED,
    STATUS_ERROR,
    STATUS_RUNNING,
    STEP_ADD_SOURCE,
    STEP_AUTH,
    STEP_CREATE_NOTEBOOK,
    STEP_DONE,
    STEP_ERROR,
    STEP_GENERATE_ARTIFACTS,
    STEP_WAIT_ARTIFACTS,
    STEP_WAIT_SOURCE,
    TASK_COMPLETED,
    TASK_FAILED,
    TASK_IN_PROGRESS,
    ArtifactTask,
    PipelineState,
    StateStore,
    format_timestamp,
    parse_timestamp,
    utc_now,
)

logger = logging.getLogger("notebooklm_pipeline.pipeline")

ABORT_DETAIL = "Monitoring stopped. You can start another generation."
ALL_FAILED_MESSAGE = "All artifact generations failed. No artifacts were generated."

PDF_URL_PATTERN = re.compile(r"\.pdf(\?|#|$)", re.IGNORECASE)
PDF_MIME_PATTERN = re.compile(r"application/(pdf|octet-stream)", re.IGNORECASE)
PDF_MAGIC = b"%PDF"
DOWNLOAD_TIMEOUT = 60.0

# Tick-time failures that are retried on the next wake
TRANSIENT_ERRORS = (NotebookLMError, httpx.HTTPError)


@dataclass
class UploadFile:
    """A local file handed to the pipeline for upload."""

    filename: str
    file_data: Any  # bytes-like, base64 text or a list of byte values
    mime_type: str = "application/pdf"

    @classmethod
    def from_dict(cls, data: dict) -> "UploadFile":
        return cls(
            filename=data.get("filename") or data.get("file_name") or "",
            file_data=data.get("file_data"),
            mime_type=data.get("mime_type") or "application/pdf",
        )


def source_label(source_type: str) -> str:
    return "webpage source" if source_type == constants.SOURCE_KIND_WEBPAGE else "PDF source"


def ingestion_label(source_type: str) -> str:
    return "webpage ingestion" if source_type == constants.SOURCE_KIND_WEBPAGE else "PDF ingestion"


def is_likely_pdf_url(url: str) -> bool:
    return isinstance(url, str) and bool(PDF_URL_PATTERN.search(url))


def _format_timeout(seconds: float) -> str:
    if seconds >= 60:
        minutes = int(seconds // 60)
        return "1 minute" if minutes == 1 else f"{minutes} minutes"
    return f"{int(seconds)} seconds"


# =============================================================================
# PDF download fallback
# =============================================================================

def _decode_filename_value(raw: str | None) -> str | None:
    if not raw:
        return None
    value = raw.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        value = value[1:-1]
    return urllib.parse.unquote(value) or None


def filename_from_content_disposition(header: str | None) -> str | None:
    """Filename from a Content-Disposition header, preferring RFC 5987 ``filename*``."""
    if not header:
        return None

    star_match = re.search(r"filename\*\s*=\s*([^;]+)", header, re.IGNORECASE)
    if star_match:
        value = star_match.group(1).strip()
        charset_match = re.match(r"^([^']*)'[^']*'(.*)$", value)
        if charset_match:
            value = charset_match.group(2)
        decoded = _decode_filename_value(value)
        if decoded:
            return decoded

    plain_match = re.search(r"filename\s*=\s*([^;]+)", header, re.IGNORECASE)
    if plain_match:
        return _decode_filename_value(plain_match.group(1))
    return None


def filename_from_url(url: str | None) -> str | None:
    if not url:
        return None
    path = urllib.parse.urlparse(url).path
    return _decode_filename_value(path.rsplit("/", 1)[-1])


def ensure_pdf_filename(name: str | None) -> str:
    name = (name or "").strip()
    if not name:
        return "uploaded.pdf"
    return name if name.lower().endswith(".pdf") else f"{name}.pdf"


def download_remote_pdf(url: str, page_url: str | None = None, timeout: float = DOWNLOAD_TIMEOUT) -> UploadFile:
    """Download a PDF so it can be uploaded when NotebookLM refuses the URL.

    Raises:
        TransportError: The download failed
        SourceProcessingError: The content does not look like a PDF
    """
    headers = {"Accept": "application/pdf,application/octet-stream;q=0.9,*/*;q=0.8"}
    if page_url:
        headers["Referer"] = page_url

    try:
        with httpx.Client(follow_redirects=True, timeout=timeout) as client:
            response = client.get(url, headers=headers)
    except httpx.HTTPError as e:
        raise TransportError(f"Failed to download source PDF: {e}") from e

    if not response.is_success:
        raise TransportError(
            f"HTTP {response.status_code} while downloading source PDF",
            status=response.status_code,
        )

    final_url = str(response.url)
    filename = ensure_pdf_filename(
        filename_from_content_disposition(response.headers.get("content-disposition"))
        or filename_from_url(final_url)
        or filename_from_url(url)
    )

    content = response.content
    likely_pdf = (
        PDF_MIME_PATTERN.search(response.headers.get("content-type", "")) is not None
        or is_likely_pdf_url(final_url)
        or content[:4] == PDF_MAGIC
    )
    if not likely_pdf:
        raise SourceProcessingError("Downloaded content does not appear to be a PDF")

    return UploadFile(filename=filename, file_data=content, mime_type="application/pdf")


# =============================================================================
# Pipeline
# =============================================================================

class Pipeline:
    """Orchestrates one pipeline run at a time over a :class:`StateStore`."""

    def __init__(
        self,
        store: StateStore,
        scheduler: WakeScheduler,
        client_factory: Callable[[], NotebookLMClient] = NotebookLMClient.from_cookies,
        settings_provider: Callable[[], PipelineSettings] = load_settings,
        hooks: CompletionHooks | None = None,
        config: PipelineConfig | None = None,
        clock: Callable[[], datetime] = utc_now,
        sleep: Callable[[float], None] = time.sleep,
        downloader: Callable[..., UploadFile] = download_remote_pdf,
    ):
        self.store = store
        self.scheduler = scheduler
        self.client_factory = client_factory
        self.settings_provider = settings_provider
        self.hooks = hooks or LoggingHooks()
        self.config = config or PipelineConfig()
        self.clock = clock
        self.sleep = sleep
        self.downloader = downloader
        self._client: NotebookLMClient | None = None

    def _get_client(self) -> NotebookLMClient:
        if self._client is None:
            self._client = self.client_factory()
        return self._client

    def close(self) -> None:
        """Release the NotebookLM client, if one was created."""
        if self._client is not None:
            self._client.close()
            self._client = None

    def _now(self) -> str:
        return format_timestamp(self.clock())

    def _elapsed(self, state: PipelineState) -> float:
        started = parse_timestamp(state.step_started_at)
        if started is None:
            return 0.0
        return max(0.0, (self.clock() - started).total_seconds())

    # -------------------------------------------------------------------------
    # Guarded commits
    # -------------------------------------------------------------------------

    @staticmethod
    def _is_current(state: PipelineState, run_id: str | None, step: str | None = None) -> bool:
        if state.status != STATUS_RUNNING or state.started_at != run_id:
            return False
        return step is None or state.step == step

    def _commit(self, run_id: str | None, step: str | None, changes: dict) -> bool:
        """Apply ``changes`` only if the run is still at ``step``. Returns whether it applied."""
        applied = False

        def apply(current: PipelineState):
            nonlocal applied
            if not self._is_current(current, run_id, step):
                return None
            applied = True
            return changes

        self.store.update(apply)
        if not applied:
            logger.info(f"Run {run_id} was superseded at step {step}; discarding update")
        return applied

    # -------------------------------------------------------------------------
    # Commands
    # -------------------------------------------------------------------------

    def get_state(self) -> PipelineState:
        return self.store.get()

    def reset_state(self) -> PipelineState:
        self.scheduler.clear()
        return self.store.reset()

    def abort_pipeline(self) -> PipelineState:
        """Stop monitoring. Calls already in flight finish but cannot commit."""
        self.scheduler.clear()
        state = self.store.reset(step_detail=ABORT_DETAIL)
        logger.info("Pipeline aborted by user")
        return state

    def start_pipeline(
        self,
        source: str,
        source_kind: str = constants.SOURCE_KIND_PDF,
        page_url: str | None = None,
    ) -> PipelineState:
        """Start a run for a URL source and execute the setup steps eagerly."""
        if source_kind not in constants.SOURCE_KINDS:
            raise ValueError(f"Unknown source kind '{source_kind}'. Must be one of: {', '.join(constants.SOURCE_KINDS)}")
        if not source:
            raise ValueError("Source URL is required")

        run_id = self._begin(source_url=source, source_type=source_kind, page_url=page_url)
        self._run_setup(run_id, source, page_url, None, source_kind)
        return self.store.get()

    def start_pipeline_from_file(self, upload: UploadFile | dict, page_url: str | None = None) -> PipelineState:
        """Start a run that uploads a local file as a PDF source."""
        if isinstance(upload, dict):
            upload = UploadFile.from_dict(upload)
        if not upload.filename or upload.file_data is None:
            raise ValueError("Missing file payload or filename")

        run_id = self._begin(
            source_url=upload.filename,
            source_type=constants.SOURCE_KIND_PDF,
            page_url=page_url,
            file_name=upload.filename,
        )
        self._run_setup(run_id, upload.filename, page_url, upload, constants.SOURCE_KIND_PDF)
        return self.store.get()

    def _begin(self, **source_fields) -> str:
        self.scheduler.clear()
        now = self._now()
        self.store.reset(
            status=STATUS_RUNNING,
            step=STEP_AUTH,
            step_detail="Authenticating with NotebookLM...",
            started_at=now,
            step_started_at=now,
            **source_fields,
        )
        logger.info(f"Pipeline started for {source_label(source_fields['source_type'])}: {source_fields['source_url']}")
        return now

    # -------------------------------------------------------------------------
    # Setup (eager)
    # -------------------------------------------------------------------------

    def _run_setup(self, run_id: str, source_url: str, page_url: str | None, upload: UploadFile | None, source_type: str) -> None:
        notebook_id = None
        try:
            client = self._get_client()
            client.ensure_credentials()
            if not self._commit(run_id, STEP_AUTH, {"step": STEP_CREATE_NOTEBOOK, "step_detail": "Creating notebook..."}):
                return

            notebook = client.create_notebook("")
            if not notebook.id:
                raise ProtocolDecodeError("Failed to create notebook -- no ID returned")
            notebook_id = notebook.id

            if upload:
                detail = f"Uploading local PDF: {upload.filename}"
            else:
                detail = f"Adding {source_label(source_type)}: {source_url[:60]}..."
            if not self._commit(run_id, STEP_CREATE_NOTEBOOK, {
                "notebook_id": notebook.id,
                "notebook_url": notebook.url,
                "step": STEP_ADD_SOURCE,
                "step_detail": detail,
            }):
                return

            if upload:
                source = client.add_file_source(notebook_id, upload.filename, upload.file_data, upload.mime_type)
            else:
                source = self._add_url_source(client, run_id, notebook_id, source_url, page_url, source_type)

            if not source.get("id"):
                raise SourceProcessingError("Failed to add source -- no ID returned")

            if not self._commit(run_id, STEP_ADD_SOURCE, {
                "source_id": str(source["id"]),
                "step": STEP_WAIT_SOURCE,
                "step_detail": f"Waiting for {ingestion_label(source_type)} (checking every ~{int(self.config.poll_interval)}s)...",
                "step_started_at": self._now(),
            }):
                return

            self.scheduler.clear()
            self.scheduler.arm(self.config.poll_interval)
            logger.info(f"Polling started ({self.config.poll_interval}s interval)")

        except Exception as e:
            logger.exception("Pipeline setup failed")
            self._fail(run_id, str(e) or "Unknown error", notebook_id, source_was_ready=False)

    def _add_url_source(self, client: NotebookLMClient, run_id: str, notebook_id: str, url: str, page_url: str | None, source_type: str) -> dict:
        if url.startswith("file://"):
            raise ValueError("Local PDF detected. Use file upload mode (start-file) instead of URL mode.")

        can_fallback = source_type != constants.SOURCE_KIND_WEBPAGE and is_likely_pdf_url(url)
        try:
            return client.add_url_source(notebook_id, url)
        except TRANSIENT_ERRORS as url_err:
            if not can_fallback:
                raise
            logger.warning(f"URL source add failed, trying download+upload fallback: {url_err}")
            self._commit(run_id, STEP_ADD_SOURCE, {
                "step_detail": "URL source was blocked. Downloading PDF from the current URL and uploading directly..."
            })

            try:
                fallback = self.downloader(url, page_url)
                source = client.add_file_source(notebook_id, fallback.filename, fallback.file_data, fallback.mime_type)
            except (NotebookLMError, httpx.HTTPError, ValueError) as fallback_err:
                raise SourceProcessingError(f"{url_err}; fallback upload failed: {fallback_err}") from fallback_err

            self._commit(run_id, STEP_ADD_SOURCE, {
                "step_detail": f"URL blocked. Fallback upload succeeded ({fallback.filename}).",
                "file_name": fallback.filename,
            })
            return source

    # -------------------------------------------------------------------------
    # Ticks
    # -------------------------------------------------------------------------

    def handle_wake(self) -> PipelineState:
        """Run one tick of whichever polling phase is active."""
        state = self.store.get()

        if not state.is_running:
            self.scheduler.clear()
            return state

        logger.info(f"Tick: step={state.step}")
        if state.step == STEP_WAIT_SOURCE:
            self.tick_source_poll(state)
        elif state.step == STEP_WAIT_ARTIFACTS:
            self.tick_artifact_poll(state)
        else:
            logger.info(f"Tick during non-polling step '{state.step}', ignoring")
        return self.store.get()

    def tick_source_poll(self, state: PipelineState) -> None:
        """One poll of source ingestion; on ready, request the artifacts."""
        run_id = state.started_at
        elapsed = self._elapsed(state)
        src_label = source_label(state.source_type)
        ing_label = ingestion_label(state.source_type)

        if elapsed > self.config.source_timeout:
            self._fail(
                run_id,
                f"{src_label} ingestion timed out after {_format_timeout(self.config.source_timeout)}.",
                state.notebook_id,
                source_was_ready=False,
            )
            return

        elapsed_sec = round(elapsed)
        try:
            sources = self._get_client().list_sources(state.notebook_id)
        except TRANSIENT_ERRORS as e:
            logger.warning(f"Could not list sources, will retry: {e}")
            self._commit(run_id, STEP_WAIT_SOURCE, {"step_detail": f"Waiting for {ing_label} ({elapsed_sec}s, retrying...)"})
            return

        source = next((s for s in sources if str(s["id"]) == str(state.source_id)), None)

        if source is None:
            self._commit(run_id, STEP_WAIT_SOURCE, {"step_detail": f"Waiting for {src_label} to appear ({elapsed_sec}s elapsed)..."})
            return

        if source["status"] == constants.SOURCE_STATUS_ERROR:
            # The notebook already holds the source, so it is kept
            self._fail(run_id, f"{src_label} processing failed.", state.notebook_id, source_was_ready=True)
            return

        if source["status"] != constants.SOURCE_STATUS_READY:
            self._commit(run_id, STEP_WAIT_SOURCE, {"step_detail": f"{ing_label} in progress ({elapsed_sec}s elapsed)..."})
            return

        logger.info("Source ready, triggering artifact generation")
        if not self._commit(run_id, STEP_WAIT_SOURCE, {
            "step": STEP_GENERATE_ARTIFACTS,
            "step_detail": "Source ready! Starting generation...",
        }):
            return

        self._generate_artifacts(run_id, state.notebook_id, state.source_id)

    def _generate_artifacts(self, run_id: str, notebook_id: str, source_id: str) -> None:
        try:
            client = self._get_client()

            title = client.get_notebook_title(notebook_id)
            if title:
                self._commit(run_id, STEP_GENERATE_ARTIFACTS, {"notebook_title": title})
                logger.info(f"Notebook title: {title}")

            requests = self._artifact_requests(client, notebook_id, [source_id], self.settings_provider())
            if not requests:
                self._fail(run_id, "No artifact types are enabled in settings.", notebook_id, source_was_ready=True)
                return

            tasks: list[ArtifactTask] = []
            for i, (artifact_type, request) in enumerate(requests):
                if not self._is_current(self.store.get(), run_id, STEP_GENERATE_ARTIFACTS):
                    logger.info("Run superseded during artifact generation; stopping")
                    return
                tasks.append(self._run_task(artifact_type, request))
                if i < len(requests) - 1:
                    self.sleep(self.config.start_delay)

            labels = ", ".join(t.artifact_type for t in tasks)
            self._commit(run_id, STEP_GENERATE_ARTIFACTS, {
                "tasks": tasks,
                "step": STEP_WAIT_ARTIFACTS,
                "step_detail": f"Generating: {labels}...",
                "step_started_at": self._now(),
            })

        except Exception as e:
            logger.exception("Artifact generation could not be started")
            self._fail(run_id, f"Failed to start artifact generation: {e}", notebook_id, source_was_ready=True)

    @staticmethod
    def _run_task(artifact_type: str, request: Callable[[], Any]) -> ArtifactTask:
        """Start one artifact. Any failure becomes a ``failed`` task."""
        try:
            result = request()
        except Exception as e:
            logger.warning(f"Failed to start {artifact_type}: {e}")
            return ArtifactTask(artifact_type=artifact_type, status=TASK_FAILED, error=str(e))

        if result.status == TASK_COMPLETED:
            return ArtifactTask(artifact_type=artifact_type, task_id=result.task_id, status=TASK_COMPLETED)
        if result.status == TASK_FAILED:
            return ArtifactTask(
                artifact_type=artifact_type,
                task_id=result.task_id,
                status=TASK_FAILED,
                error=result.error or "Artifact generation failed",
            )
        if not result.task_id:
            return ArtifactTask(artifact_type=artifact_type, status=TASK_FAILED, error="API returned no task ID")

        # Pending and unknown initial states are polled like in-progress tasks
        return ArtifactTask(artifact_type=artifact_type, task_id=result.task_id, status=TASK_IN_PROGRESS)

    @staticmethod
    def _artifact_requests(client: NotebookLMClient, notebook_id: str, source_ids: list[str], settings: PipelineSettings) -> list[tuple[str, Callable[[], Any]]]:
        """Enabled artifact requests in start order."""
        language = settings.language or "en"
        quiz_quantity = constants.QUIZ_QUANTITIES.resolve(settings.quiz_quantity, constants.QUIZ_QUANTITY_STANDARD)
        quiz_difficulty = constants.QUIZ_DIFFICULTIES.resolve(settings.quiz_difficulty, constants.QUIZ_DIFFICULTY_MEDIUM)

        candidates = [
            (settings.generate_audio, "audio", partial(
                client.generate_audio, notebook_id, source_ids,
                language=language,
                length_code=constants.AUDIO_LENGTHS.resolve(settings.audio_length, constants.AUDIO_LENGTH_LONG),
                format_code=constants.AUDIO_FORMATS.resolve(settings.audio_format, None),
                instructions=settings.audio_prompt or None,
            )),
            (settings.generate_infographic, "infographic", partial(
                client.generate_infographic, notebook_id, source_ids,
                language="en",
                orientation_code=constants.INFOGRAPHIC_ORIENTATIONS.resolve(
                    settings.infographic_orientation, constants.INFOGRAPHIC_ORIENTATION_LANDSCAPE),
                detail_code=constants.INFOGRAPHIC_DETAILS.resolve(
                    settings.infographic_detail, constants.INFOGRAPHIC_DETAIL_STANDARD),
                instructions=settings.infographic_prompt or None,
            )),
            (settings.generate_video, "video", partial(
                client.generate_video, notebook_id, source_ids,
                format_code=constants.VIDEO_FORMATS.resolve(settings.video_format, constants.VIDEO_FORMAT_EXPLAINER),
                style_code=constants.VIDEO_STYLES.resolve(settings.video_style, constants.VIDEO_STYLE_AUTO_SELECT),
                instructions=settings.video_prompt or None,
                language=language,
            )),
            (settings.generate_report, "report", partial(
                client.generate_report, notebook_id, source_ids,
                report_format=settings.report_format,
                instructions=settings.report_prompt or None,
                language=language,
            )),
            (settings.generate_quiz, "quiz", partial(
                client.generate_quiz, notebook_id, source_ids,
                quantity_code=quiz_quantity,
                difficulty_code=quiz_difficulty,
                instructions=settings.quiz_prompt or None,
            )),
            (settings.generate_flashcards, "flashcards", partial(
                client.generate_flashcards, notebook_id, source_ids,
                quantity_code=quiz_quantity,
                difficulty_code=quiz_difficulty,
                instructions=settings.flashcards_prompt or None,
            )),
            (settings.generate_slide_deck, "slide_deck", partial(
                client.generate_slide_deck, notebook_id, source_ids,
                format_code=constants.SLIDE_DECK_FORMATS.resolve(settings.slide_deck_format, constants.SLIDE_DECK_FORMAT_DETAILED),
                length_code=constants.SLIDE_DECK_LENGTHS.resolve(settings.slide_deck_length, constants.SLIDE_DECK_LENGTH_DEFAULT),
                instructions=settings.slide_deck_prompt or None,
                language=language,
            )),
            (settings.generate_mind_map, "mind_map", partial(
                client.generate_mind_map, notebook_id, source_ids,
            )),
            (settings.generate_data_table, "data_table", partial(
                client.generate_data_table, notebook_id, source_ids,
                instructions=settings.data_table_prompt or None,
                language=language,
            )),
        ]
        return [(artifact_type, request) for enabled, artifact_type, request in candidates if enabled]

    def tick_artifact_poll(self, state: PipelineState) -> None:
        """One batched poll of every in-progress artifact."""
        run_id = state.started_at
        elapsed = self._elapsed(state)

        if elapsed > self.config.artifact_timeout:
            self._fail(
                run_id,
                f"Artifact generation timed out after {_format_timeout(self.config.artifact_timeout)}.",
                state.notebook_id,
                source_was_ready=True,
            )
            return

        elapsed_min = round(elapsed / 60)
        try:
            statuses = self._get_client().list_artifact_statuses(state.notebook_id)
        except TRANSIENT_ERRORS as e:
            logger.warning(f"Error listing artifact statuses, will retry: {e}")
            self._commit(run_id, STEP_WAIT_ARTIFACTS, {
                "step_detail": f"Checking artifact status (~{elapsed_min} min elapsed, retrying...)"
            })
            return

        updated: list[ArtifactTask] = []
        for task in state.tasks:
            info = statuses.get(str(task.task_id)) if task.status == TASK_IN_PROGRESS else None
            if info is not None and info.status in (TASK_COMPLETED, TASK_FAILED):
                logger.info(f"{task.artifact_type}: {info.status}")
                error = "Artifact generation failed" if info.status == TASK_FAILED else None
                updated.append(replace(task, status=info.status, error=error))
            else:
                updated.append(task)

        summary = " | ".join(f"{t.artifact_type}: {t.status}" for t in updated)
        detail = f"{summary} (~{elapsed_min} min elapsed)"

        all_done = bool(updated) and all(t.status != TASK_IN_PROGRESS for t in updated)
        if not all_done:
            self._commit(run_id, STEP_WAIT_ARTIFACTS, {"tasks": updated, "step_detail": detail})
            return

        if not any(t.status == TASK_COMPLETED for t in updated):
            if self._commit(run_id, STEP_WAIT_ARTIFACTS, {"tasks": updated, "step_detail": detail}):
                self._fail(run_id, ALL_FAILED_MESSAGE, state.notebook_id, source_was_ready=True)
            return

        self._complete(run_id, updated, state)

    # -------------------------------------------------------------------------
    # Terminal transitions
    # -------------------------------------------------------------------------

    def _complete(self, run_id: str, tasks: list[ArtifactTask], state: PipelineState) -> None:
        total = len(tasks)
        completed = sum(1 for t in tasks if t.status == TASK_COMPLETED)
        failed = sum(1 for t in tasks if t.status == TASK_FAILED)
        all_succeeded = failed == 0 and completed == total

        if all_succeeded:
            summary = f"All {total} artifacts ready"
        else:
            summary = f"{completed}/{total} artifacts ready ({failed} failed)"

        if not self._commit(run_id, STEP_WAIT_ARTIFACTS, {
            "tasks": tasks,
            "status": STATUS_COMPLETED,
            "step": STEP_DONE,
            "step_detail": summary,
            "completed_at": self._now(),
        }):
            return

        self.scheduler.clear()
        logger.info(f"Pipeline completed: {summary}")

        settings = self.settings_provider()
        if settings.chime_enabled:
            fire_hook(self.hooks.play_chime)

        if settings.notification_enabled:
            title_part = f'"{state.notebook_title}" ' if state.notebook_title else ""
            if all_succeeded:
                label = "1 artifact" if completed == 1 else f"{completed} artifacts"
                message = f"Notebook {title_part}is ready with {label}."
            else:
                message = f"Notebook {title_part}is partially ready with {completed}/{total} artifacts ({failed} failed)."
            fire_hook(self.hooks.notify, "NotebookLM Ready!", message, state.notebook_url or notebook_url(state.notebook_id))

        if settings.auto_open_notebook and state.notebook_url:
            fire_hook(self.hooks.open_url, state.notebook_url)

    def _fail(self, run_id: str | None, message: str, notebook_id: str | None, source_was_ready: bool) -> None:
        """Terminal error. Deletes the notebook when its source never became ready."""
        if not self._is_current(self.store.get(), run_id):
            logger.info(f"Run {run_id} was superseded; not recording failure: {message}")
            return

        self.scheduler.clear()

        cleanup = ""
        if notebook_id and not source_was_ready:
            try:
                self._get_client().delete_notebook(notebook_id)
                cleanup = " Blank notebook was deleted automatically."
            except Exception as e:
                logger.warning(f"Failed to delete blank notebook {notebook_id}: {e}")
                cleanup = " Failed to delete blank notebook automatically."

        final_error = f"{message}{cleanup}".strip()
        if not self._commit(run_id, None, {
            "status": STATUS_ERROR,
            "step": STEP_ERROR,
            "step_detail": final_error,
            "error": final_error,
        }):
            return

        logger.error(f"Pipeline failed: {final_error}")
        if self.settings_provider().notification_enabled:
            fire_hook(self.hooks.notify, "NotebookLM Pipeline Error", final_error[:140] or "Unknown error", None)


def build_default_pipeline(home: Path | None = None, hooks: CompletionHooks | None = None) -> Pipeline:
    """Pipeline backed by files under the home directory, configured from the environment."""
    home = home or get_home_dir()
    return Pipeline(
        store=StateStore(home / "state.json"),
        scheduler=FileWakeScheduler(home / "alarm.json"),
        hooks=hooks,
        config=PipelineConfig.from_env(),
    )
