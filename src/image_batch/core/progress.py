"""运行状态与进度快照。"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Optional

from image_batch.core.models import FileOutcome, OutcomeStatus


@dataclass(frozen=True, slots=True)
class RunStatus:
    """某一时刻的运行状态快照，可在任意线程读取。"""

    running: bool
    dirs_visited: int
    files_visited: int
    images_transformed: int = 0
    files_failed: int = 0
    fatal_error: Optional[str] = None

    def describe(self) -> str:
        """生成形如 ``Running Dirs:1, Files:2`` 的进度文本。"""

        label = "Running" if self.running else "Finished"
        return f"{label} Dirs:{self.dirs_visited}, Files:{self.files_visited}"


class RunState:
    """后台遍历的计数器，只由工作线程修改，读取方通过 snapshot 获取一致视图。"""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._running = False
        self._dirs = 0
        self._files = 0
        self._images = 0
        self._failed = 0
        self._fatal_error: Optional[str] = None

    def reset(self) -> None:
        with self._lock:
            self._dirs = 0
            self._files = 0
            self._images = 0
            self._failed = 0
            self._fatal_error = None

    def set_running(self, running: bool) -> None:
        with self._lock:
            self._running = running

    def add_dir(self) -> None:
        with self._lock:
            self._dirs += 1

    def add_file(self) -> None:
        with self._lock:
            self._files += 1

    def record(self, outcome: FileOutcome) -> None:
        with self._lock:
            if outcome.transformed:
                self._images += 1
            elif outcome.status is OutcomeStatus.FAILED:
                self._failed += 1

    def record_fatal(self, reason: str) -> None:
        with self._lock:
            self._fatal_error = reason

    @property
    def running(self) -> bool:
        with self._lock:
            return self._running

    @property
    def images(self) -> int:
        with self._lock:
            return self._images

    def snapshot(self) -> RunStatus:
        with self._lock:
            return RunStatus(
                running=self._running,
                dirs_visited=self._dirs,
                files_visited=self._files,
                images_transformed=self._images,
                files_failed=self._failed,
                fatal_error=self._fatal_error,
            )
