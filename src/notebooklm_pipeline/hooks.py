"""Completion side effects: chime, notification and opening the notebook."""

import logging
import webbrowser

logger = logging.getLogger("notebooklm_pipeline.pipeline")


class CompletionHooks:
    """Side-effect contract invoked by the pipeline on terminal transitions.

    Implementations must not raise; the pipeline calls them through
    :func:`fire_hook`, which logs and drops any exception anyway.
    """

    def play_chime(self) -> None:
        pass

    def notify(self, title: str, message: str, open_url: str | None = None) -> None:
        pass

    def open_url(self, url: str) -> None:
        pass


class LoggingHooks(CompletionHooks):
    """Default hooks: log the events and open URLs in the system browser."""

    def play_chime(self) -> None:
        logger.info("Pipeline finished (chime)")

    def notify(self, title: str, message: str, open_url: str | None = None) -> None:
        if open_url:
            logger.info(f"{title}: {message} ({open_url})")
        else:
            logger.info(f"{title}: {message}")

    def open_url(self, url: str) -> None:
        webbrowser.open(url)


def fire_hook(hook, *args) -> None:
    try:
        hook(*args)
    except Exception as e:
        logger.warning(f"Completion hook {getattr(hook, '__name__', hook)} failed: {e}")
