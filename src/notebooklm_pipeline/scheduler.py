"""Periodic wake signal for the polling phases.

The pipeline never sleeps between polls itself. It arms an alarm; something
outside the process (cron, a systemd timer, ``notebooklm-pipeline run``)
delivers wakes, and each wake runs exactly one tick against persisted state.
"""

import json
import logging
import os
import time
from pathlib import Path
from typing import Callable

logger = logging.getLogger("notebooklm_pipeline.pipeline")

ALARM_NAME = "pipeline-poll"


class WakeScheduler:
    """Alarm contract used by the pipeline."""

    def arm(self, period_seconds: float) -> None:
        raise NotImplementedError

    def clear(self) -> None:
        raise NotImplementedError

    def is_armed(self) -> bool:
        raise NotImplementedError

    def period(self) -> float | None:
        raise NotImplementedError


class MemoryWakeScheduler(WakeScheduler):
    """In-process alarm record."""

    def __init__(self):
        self._period: float | None = None
        self.arm_count = 0
        self.clear_count = 0

    def arm(self, period_seconds: float) -> None:
        self._period = period_seconds
        self.arm_count += 1

    def clear(self) -> None:
        self._period = None
        self.clear_count += 1

    def is_armed(self) -> bool:
        return self._period is not None

    def period(self) -> float | None:
        return self._period


class FileWakeScheduler(WakeScheduler):
    """Alarm persisted as a small JSON file so separate processes can see it."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def _read(self) -> dict | None:
        if not self.path.exists():
            return None
        try:
            with open(self.path) as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Unreadable alarm file {self.path}: {e}")
            return None
        return data if isinstance(data, dict) else None

    def arm(self, period_seconds: float) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(".tmp")
        with open(tmp_path, "w") as f:
            json.dump({"name": ALARM_NAME, "period": period_seconds, "armed_at": time.time()}, f)
        os.replace(tmp_path, self.path)
        logger.info(f"Alarm armed ({period_seconds}s interval)")

    def clear(self) -> None:
        try:
            self.path.unlink()
        except FileNotFoundError:
            return
        logger.info("Alarm cleared")

    def is_armed(self) -> bool:
        return self._read() is not None

    def period(self) -> float | None:
        data = self._read()
        if data is None:
            return None
        try:
            return float(data.get("period"))
        except (TypeError, ValueError):
            return None


def run_host_loop(
    pipeline,
    scheduler: WakeScheduler,
    sleep: Callable[[float], None] = time.sleep,
    max_ticks: int | None = None,
    should_stop: Callable[[], bool] | None = None,
) -> int:
    """Deliver wakes until the alarm is cleared.

    Sleeps one alarm period before each wake. Holds no pipeline state: every
    wake goes through ``pipeline.handle_wake()``, which re-reads the store.
    Returns the number of wakes delivered.
    """
    ticks = 0
    while scheduler.is_armed():
        if max_ticks is not None and ticks >= max_ticks:
            break
        if should_stop and should_stop():
            break

        period = scheduler.period() or 15.0
        sleep(period)

        if not scheduler.is_armed():
            break
        pipeline.handle_wake()
        ticks += 1

    return ticks
