"""Command-line entry point: ``notebooklm-pipeline``.

``start`` and ``start-file`` run the setup steps and arm the alarm. Polling
happens one ``tick`` at a time; wire ``tick`` to cron or a systemd timer, or
keep ``run`` in the foreground to deliver ticks until the job settles.
"""

import argparse
import json
import logging
import mimetypes
import os
import sys
import time
from pathlib import Path

from . import __version__, constants
from .auth import AuthCookies, parse_cookie_header, save_cookies_to_cache, validate_cookies
from .pipeline import Pipeline, UploadFile, build_default_pipeline
from .scheduler import run_host_loop
from .state import PipelineState


CLI_HANDLER_NAME = "notebooklm_pipeline.cli"


def _configure_logging(debug: bool) -> None:
    handler = logging.StreamHandler()
    handler.set_name(CLI_HANDLER_NAME)
    handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    ))

    # API traffic stays quiet unless debugging
    levels = {
        "notebooklm_pipeline.pipeline": logging.DEBUG if debug else logging.INFO,
        "notebooklm_pipeline.api": logging.DEBUG if debug else logging.WARNING,
    }
    for name, level in levels.items():
        target = logging.getLogger(name)
        target.setLevel(level)
        if not any(h.get_name() == CLI_HANDLER_NAME for h in target.handlers):
            target.addHandler(handler)


def _print_state(state: PipelineState, as_json: bool = False) -> None:
    if as_json:
        print(json.dumps(state.to_dict(), indent=2))
        return

    print(f"Status:   {state.status}")
    if state.step:
        print(f"Step:     {state.step}")
    if state.step_detail:
        print(f"Detail:   {state.step_detail}")
    if state.notebook_url:
        title = f" ({state.notebook_title})" if state.notebook_title else ""
        print(f"Notebook: {state.notebook_url}{title}")
    for task in state.tasks:
        error = f" - {task.error}" if task.error else ""
        print(f"  {task.artifact_type:<12} {task.status}{error}")
    if state.error and state.error != state.step_detail:
        print(f"Error:    {state.error}")


def read_upload_file(path: Path) -> UploadFile:
    """Read a local file into an upload descriptor."""
    mime_type, _ = mimetypes.guess_type(path.name)
    return UploadFile(
        filename=path.name,
        file_data=path.read_bytes(),
        mime_type=mime_type or "application/pdf",
    )


def cmd_login(args, pipeline: Pipeline) -> int:
    cookie_header = args.cookies or os.environ.get("NOTEBOOKLM_COOKIES", "")
    if not cookie_header:
        print("ERROR: Pass --cookies \"<Cookie header>\" or set NOTEBOOKLM_COOKIES")
        return 1

    cookies = parse_cookie_header(cookie_header)
    if not validate_cookies(cookies):
        print("ERROR: Missing required cookies (SID, HSID, SSID, APISID, SAPISID).")
        print("Copy the full Cookie header from a signed-in notebooklm.google.com request.")
        return 1

    cache_path = save_cookies_to_cache(AuthCookies(cookies=cookies, extracted_at=time.time()))
    print(f"Saved {len(cookies)} cookies to {cache_path}")
    return 0


def cmd_start(args, pipeline: Pipeline) -> int:
    state = pipeline.start_pipeline(args.url, source_kind=args.kind, page_url=args.page_url)
    _print_state(state, args.json)
    return 1 if state.status == "error" else 0


def cmd_start_file(args, pipeline: Pipeline) -> int:
    path = Path(args.path).expanduser()
    if not path.is_file():
        print(f"ERROR: File not found: {path}")
        return 1
    state = pipeline.start_pipeline_from_file(read_upload_file(path))
    _print_state(state, args.json)
    return 1 if state.status == "error" else 0


def cmd_status(args, pipeline: Pipeline) -> int:
    _print_state(pipeline.get_state(), args.json)
    return 0


def cmd_tick(args, pipeline: Pipeline) -> int:
    if not pipeline.scheduler.is_armed():
        # Nothing scheduled; keep cron-driven invocations silent
        return 0
    _print_state(pipeline.handle_wake(), args.json)
    return 0


def cmd_run(args, pipeline: Pipeline) -> int:
    ticks = run_host_loop(pipeline, pipeline.scheduler, max_ticks=args.max_ticks)
    state = pipeline.get_state()
    print(f"Delivered {ticks} ticks.")
    _print_state(state, args.json)
    return 1 if state.status == "error" else 0


def cmd_abort(args, pipeline: Pipeline) -> int:
    _print_state(pipeline.abort_pipeline(), args.json)
    return 0


def cmd_reset(args, pipeline: Pipeline) -> int:
    _print_state(pipeline.reset_state(), args.json)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="notebooklm-pipeline",
        description="Turn a PDF or webpage into a NotebookLM notebook with generated artifacts",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Environment Variables:
  NOTEBOOKLM_COOKIES                    Cookie header (otherwise the login cache is used)
  NOTEBOOKLM_PIPELINE_HOME              State/settings directory (default: ~/.notebooklm-pipeline)
  NOTEBOOKLM_PIPELINE_POLL_INTERVAL     Seconds between ticks (default: 15)
  NOTEBOOKLM_PIPELINE_SOURCE_TIMEOUT    Ingestion timeout in seconds (default: 600)
  NOTEBOOKLM_PIPELINE_ARTIFACT_TIMEOUT  Generation timeout in seconds (default: 1200)

Examples:
  notebooklm-pipeline login --cookies "SID=...; HSID=..."
  notebooklm-pipeline start https://example.com/paper.pdf
  notebooklm-pipeline start https://example.com/article --kind webpage
  notebooklm-pipeline run                  # deliver ticks until done
  * * * * * notebooklm-pipeline tick       # or let cron deliver them
        """
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--debug",
        action="store_true",
        default=os.environ.get("NOTEBOOKLM_PIPELINE_DEBUG", "").lower() == "true",
        help="Log pipeline decisions and NotebookLM API requests/responses",
    )
    parser.add_argument("--json", action="store_true", help="Print state as JSON")

    subparsers = parser.add_subparsers(dest="command", required=True)

    login = subparsers.add_parser("login", help="Cache NotebookLM cookies")
    login.add_argument("--cookies", help="Cookie header from a signed-in notebooklm.google.com request")
    login.set_defaults(func=cmd_login)

    start = subparsers.add_parser("start", help="Start a pipeline for a URL")
    start.add_argument("url", help="PDF or webpage URL")
    start.add_argument("--kind", choices=constants.SOURCE_KINDS, default=constants.SOURCE_KIND_PDF,
                       help="Source kind (default: pdf)")
    start.add_argument("--page-url", help="Page the PDF was found on (Referer for the download fallback)")
    start.set_defaults(func=cmd_start)

    start_file = subparsers.add_parser("start-file", help="Start a pipeline by uploading a local file")
    start_file.add_argument("path", help="Path to a local PDF")
    start_file.set_defaults(func=cmd_start_file)

    status = subparsers.add_parser("status", help="Show the pipeline state")
    status.set_defaults(func=cmd_status)

    tick = subparsers.add_parser("tick", help="Run one polling tick if the alarm is armed")
    tick.set_defaults(func=cmd_tick)

    run = subparsers.add_parser("run", help="Deliver ticks in the foreground until the alarm clears")
    run.add_argument("--max-ticks", type=int, default=None, help="Stop after this many ticks")
    run.set_defaults(func=cmd_run)

    abort = subparsers.add_parser("abort", help="Stop monitoring the running pipeline")
    abort.set_defaults(func=cmd_abort)

    reset = subparsers.add_parser("reset", help="Reset the pipeline state to idle")
    reset.set_defaults(func=cmd_reset)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.debug)

    pipeline = build_default_pipeline()
    try:
        return args.func(args, pipeline)
    except ValueError as e:
        print(f"ERROR: {e}")
        return 1
    except KeyboardInterrupt:
        print("\nCancelled. Run 'notebooklm-pipeline run' to resume polling.")
        return 130
    finally:
        pipeline.close()


if __name__ == "__main__":
    sys.exit(main())
