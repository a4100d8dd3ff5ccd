"""Qt background execution of the G-code build pipeline."""

from __future__ import annotations

import logging
from pathlib import Path

from PySide6.QtCore import QObject, QRunnable, QThreadPool, Signal, Slot

from ..config import get_config
from .buckets import ColorMode
from .pipeline import (
    BuildState,
    CancellationToken,
    GCodeBuildPipeline,
    ProgressSnapshot,
    ThrottledProgress,
)

__all__ = ["GCodeBuildWorker", "GCodeBuildWorkerSignals", "GCodeImportSession"]

logger = logging.getLogger(__name__)


class GCodeBuildWorkerSignals(QObject):
    """Signals emitted by :class:`GCodeBuildWorker`."""

    progress = Signal(int, object)
    finished = Signal(int, object)
    cancelled = Signal(int)
    failed = Signal(int, str)


class GCodeBuildWorker(QRunnable):
    """Background task that runs one :class:`GCodeBuildPipeline`.

    Progress snapshots are coalesced before being emitted so the receiving
    thread is not flooded with one queued signal per input line.
    """

    def __init__(
        self,
        token: int,
        path: Path,
        mode: ColorMode,
        speed_bins: int,
        *,
        progress_step: float = 0.01,
        parent: QObject | None = None,
    ) -> None:
        super().__init__()
        self._token = token
        self._path = Path(path)
        self._mode = ColorMode.parse(mode)
        self._speed_bins = speed_bins
        self._progress_step = progress_step
        self._cancel = CancellationToken()
        self.signals = GCodeBuildWorkerSignals(parent)

    @property
    def token(self) -> int:
        return self._token

    def cancel(self) -> None:
        self._cancel.cancel()

    def run(self) -> None:
        progress = ThrottledProgress(self._emit_progress, step=self._progress_step)
        pipeline = GCodeBuildPipeline(
            self._path,
            self._mode,
            speed_bins=self._speed_bins,
            progress=progress,
            cancel=self._cancel,
        )
        try:
            outcome = pipeline.run()
        except Exception as exc:  # noqa: BLE001
            logger.exception("G-code build worker crashed: %s", self._path)
            self.signals.failed.emit(self._token, str(exc) or exc.__class__.__name__)
            return

        progress.flush()
        if outcome.state is BuildState.DONE:
            self.signals.finished.emit(self._token, outcome.result)
        elif outcome.state is BuildState.CANCELLED:
            self.signals.cancelled.emit(self._token)
        else:
            self.signals.failed.emit(self._token, outcome.message)

    def _emit_progress(self, snapshot: ProgressSnapshot) -> None:
        self.signals.progress.emit(self._token, snapshot)


class GCodeImportSession(QObject):
    """Own the single in-flight G-code import of a viewer.

    Starting a new import cancels the previous one; results arriving from a
    superseded worker are ignored.
    """

    progressChanged = Signal(object)
    loaded = Signal(object)
    cancelled = Signal()
    failed = Signal(str)

    def __init__(
        self,
        parent: QObject | None = None,
        *,
        thread_pool: QThreadPool | None = None,
    ) -> None:
        super().__init__(parent)
        self._thread_pool = thread_pool or QThreadPool.globalInstance()
        self._worker: GCodeBuildWorker | None = None
        self._live: dict[int, GCodeBuildWorker] = {}
        self._token = 0

    @property
    def is_running(self) -> bool:
        return self._worker is not None

    def start(
        self,
        path: Path,
        mode: ColorMode | str | None = None,
        speed_bins: int | None = None,
    ) -> int:
        """Start importing *path* and return the token identifying the run."""

        config = get_config()
        self.cancel()
        self._token += 1
        worker = GCodeBuildWorker(
            self._token,
            Path(path),
            ColorMode.parse(mode) if mode is not None else config.color_mode,
            speed_bins if speed_bins is not None else config.speed_bins,
            parent=self,
        )
        worker.signals.progress.connect(self._on_progress)
        worker.signals.finished.connect(self._on_finished)
        worker.signals.cancelled.connect(self._on_cancelled)
        worker.signals.failed.connect(self._on_failed)
        self._worker = worker
        self._live[worker.token] = worker
        logger.info("Starting G-code import %d for %s", self._token, path)
        self._thread_pool.start(worker)
        return self._token

    def cancel(self) -> None:
        if self._worker is not None:
            logger.info("Cancelling G-code import %d", self._worker.token)
            self._worker.cancel()
            self._worker = None

    # ------------------------------------------------------------------
    # Worker callbacks
    # ------------------------------------------------------------------
    @Slot(int, object)
    def _on_progress(self, token: int, snapshot: object) -> None:
        if token == self._token and self._worker is not None:
            self.progressChanged.emit(snapshot)

    @Slot(int, object)
    def _on_finished(self, token: int, result: object) -> None:
        self._release(token)
        if token != self._token:
            return
        if self._worker is None:
            # Cancelled after the worker had already finished.
            self.cancelled.emit()
            return
        self._worker = None
        self.loaded.emit(result)

    @Slot(int)
    def _on_cancelled(self, token: int) -> None:
        self._release(token)
        if token != self._token:
            return
        self._worker = None
        self.cancelled.emit()

    @Slot(int, str)
    def _on_failed(self, token: int, message: str) -> None:
        self._release(token)
        if token != self._token:
            return
        self._worker = None
        self.failed.emit(message)

    def _release(self, token: int) -> None:
        worker = self._live.pop(token, None)
        if worker is not None:
            worker.signals.deleteLater()
