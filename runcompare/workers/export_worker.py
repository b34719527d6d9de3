"""Background worker for one comparison export."""

from __future__ import annotations

import concurrent.futures
import threading

from runcompare.config import Settings
from runcompare.export.backend import ExportBackend
from runcompare.export.pipeline import export_comparison
from runcompare.model.project import ExportRequest, ExportResult


class ExportWorker:
    """Runs export_comparison on a background thread.

    Usage:
        worker = ExportWorker(request, progress_callback=print)
        future = worker.start()
        ...
        worker.cancel()
        result = future.result()

    The progress callback is invoked from the worker thread.
    """

    def __init__(
        self,
        request: ExportRequest,
        settings: Settings | None = None,
        progress_callback: callable | None = None,
        backend: ExportBackend | None = None,
    ):
        self.request = request
        self.settings = settings or Settings()
        self.progress_callback = progress_callback
        self.backend = backend
        self.progress = 0.0
        self._cancel_event = threading.Event()
        self._executor: concurrent.futures.ThreadPoolExecutor | None = None
        self._future: concurrent.futures.Future | None = None

    @property
    def is_running(self) -> bool:
        return self._future is not None and not self._future.done()

    @property
    def is_cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def _on_progress(self, value: float) -> None:
        self.progress = value
        if self.progress_callback:
            self.progress_callback(value)

    def run(self) -> ExportResult:
        return export_comparison(
            self.request,
            settings=self.settings,
            progress_callback=self._on_progress,
            cancel_flag=self._cancel_event.is_set,
            backend=self.backend,
        )

    def start(self) -> concurrent.futures.Future:
        if self._future is not None:
            raise RuntimeError("Export already started")
        self._executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="runcompare-export"
        )
        self._future = self._executor.submit(self.run)
        # Let the thread exit once the export finishes
        self._executor.shutdown(wait=False)
        return self._future

    def cancel(self) -> None:
        self._cancel_event.set()

    def wait(self, timeout: float | None = None) -> ExportResult:
        if self._future is None:
            raise RuntimeError("Export not started")
        return self._future.result(timeout=timeout)
