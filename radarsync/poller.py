"""
Radar Sync - Poll loop.

Waits, syncs, and prunes in a loop:

    wait(long) -> sync -> [nothing new] -> wait(short) -> sync -> ...
                       -> [new frames]  -> publish update -> prune -> wait(long)

The retry interval stays fixed at the short wait until a pass downloads at
least one frame. Cancellation is cooperative: the shutdown event is checked
once per tick while waiting, never in the middle of a sync pass.
"""

from __future__ import annotations

import logging
import queue
import sys
import threading
from datetime import datetime, timedelta, timezone
from typing import Callable

from radarsync import state
from radarsync.constants import (
    DEFAULT_LONG_WAIT_MINUTES,
    DEFAULT_SHORT_WAIT_MINUTES,
    SECONDS_PER_MINUTE,
    WAIT_TICK_SECONDS,
)
from radarsync.retention import RetentionError, prune_archive
from radarsync.sync import pass_changed, run_sync_pass

logger = logging.getLogger(__name__)

MSG_UPDATE = "update"


class PollSignals:
    """
    Signals shared between the poll loop and the viewer.

    ``shutdown`` may be set by either side and is observed by the poll loop.
    ``updates`` carries one message per pass that downloaded frames; only the
    poll loop puts, only the viewer drains.
    """

    def __init__(self) -> None:
        self.shutdown = threading.Event()
        self.updates: queue.Queue = queue.Queue()

    def request_shutdown(self) -> None:
        self.shutdown.set()

    def publish_update(self, downloaded: int) -> None:
        self.updates.put(
            {
                "type": MSG_UPDATE,
                "downloaded": downloaded,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            }
        )

    def drain_updates(self) -> list[dict]:
        """Return and remove every pending update message."""
        messages = []
        while True:
            try:
                messages.append(self.updates.get_nowait())
            except queue.Empty:
                return messages


class StatusLine:
    """Single overwritable line on stdout for waits and download progress."""

    def __init__(self, enabled: bool = True, stream=None) -> None:
        self.enabled = enabled
        self._stream = stream if stream is not None else sys.stdout
        self._width = 0

    def show(self, message: str) -> None:
        if not self.enabled:
            return
        pad = max(0, self._width - len(message))
        self._stream.write("\r" + message + " " * pad)
        self._stream.flush()
        self._width = len(message)

    def finish(self) -> None:
        """End the current line so later output starts cleanly."""
        if self.enabled and self._width:
            self._stream.write("\n")
            self._stream.flush()
        self._width = 0


def wait_minutes(
    minutes: float,
    shutdown: threading.Event,
    status: StatusLine | None = None,
    tick_seconds: float = WAIT_TICK_SECONDS,
) -> bool:
    """
    Block for ``minutes``, checking ``shutdown`` every tick.

    Returns True as soon as shutdown is requested, False once the full wait
    has elapsed.
    """
    remaining = minutes * SECONDS_PER_MINUTE
    while remaining > 0:
        if status is not None:
            status.show(f"Waiting {int(round(remaining))} seconds...")
        if shutdown.wait(min(tick_seconds, remaining)):
            if status is not None:
                status.finish()
            return True
        remaining -= tick_seconds
    if status is not None:
        status.finish()
    return shutdown.is_set()


class PollLoop:
    """
    Drives sync passes and pruning until shutdown is requested.

    ``sync_pass`` returns a stats dict (see ``run_sync_pass``), ``prune``
    runs retention; both are injectable for testing. ``wait`` has the
    signature of ``wait_minutes(minutes, shutdown)``.
    """

    def __init__(
        self,
        config: dict,
        signals: PollSignals,
        sync_pass: Callable[[], dict] | None = None,
        prune: Callable[[], int] | None = None,
        wait: Callable[[float, threading.Event], bool] | None = None,
        status: StatusLine | None = None,
    ) -> None:
        schedule = config.get("schedule", {})
        self.long_wait = schedule.get("long_wait_minutes", DEFAULT_LONG_WAIT_MINUTES)
        self.short_wait = schedule.get(
            "short_wait_minutes", DEFAULT_SHORT_WAIT_MINUTES
        )
        self.signals = signals
        if status is None:
            status = StatusLine(config.get("logging", {}).get("status_line", True))
        self.status = status
        self._sync_pass = sync_pass or (
            lambda: run_sync_pass(config, progress=self.status.show)
        )
        self._prune = prune or (lambda: prune_archive(config))
        self._wait = wait or (
            lambda minutes, shutdown: wait_minutes(minutes, shutdown, self.status)
        )

    def _wait_for(self, minutes: float) -> bool:
        state.set_phase(
            "waiting", datetime.now(timezone.utc) + timedelta(minutes=minutes)
        )
        return self._wait(minutes, self.signals.shutdown)

    def _sync_once(self) -> int:
        """Run one pass; return frames downloaded, or 0 if the pass failed."""
        state.set_phase("syncing")
        stats = self._sync_pass()
        self.status.finish()
        state.record_pass(stats)
        if not pass_changed(stats):
            if stats["error"]:
                self.status.show(f"Sync failed: {stats['error']}")
                self.status.finish()
            return 0
        return stats["files_downloaded"]

    def _prune_once(self) -> None:
        state.set_phase("pruning")
        try:
            self._prune()
        except RetentionError as exc:
            logger.error("%s", exc)
            state.record_error(str(exc))

    def run(self) -> None:
        """
        Loop until shutdown. Local filesystem errors from a sync pass
        (OSError) propagate to the caller.
        """
        logger.info(
            "Poll loop started: %d min between passes, %d min retry.",
            self.long_wait,
            self.short_wait,
        )
        try:
            while True:
                if self._wait_for(self.long_wait):
                    return
                downloaded = self._sync_once()
                while not downloaded:
                    if self._wait_for(self.short_wait):
                        return
                    downloaded = self._sync_once()
                self.signals.publish_update(downloaded)
                self._prune_once()
        finally:
            state.set_phase("stopped")
            logger.info("Poll loop stopped.")
