"""后台目录遍历调度：单个工作线程、可协作取消、可安全重启。"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Optional

from image_batch.core.config import TransformRequest
from image_batch.core.models import FileOutcome, OutcomeStatus
from image_batch.core.progress import RunState, RunStatus
from image_batch.core.scanner import is_backup_dir, list_directory
from image_batch.processing.transformer import FileTransformer

LOGGER = logging.getLogger(__name__)


class WalkScheduler:
    """拥有唯一后台工作线程，递归遍历目录并对每个文件调用 FileTransformer。

    状态流转：Idle -> Running -> (Cancelling) -> Idle。计数器由工作线程独占修改，
    其他线程通过 status() 读取快照。
    """

    def __init__(
        self,
        transformer: Optional[FileTransformer] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._logger = logger or LOGGER
        self._transformer = transformer or FileTransformer(logger=self._logger)
        self._state = RunState()
        self._control_lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._cancel: Optional[threading.Event] = None

    def start(self, request: TransformRequest) -> None:
        """启动新的遍历；若上一次仍在运行，先取消并等待其结束。"""

        with self._control_lock:
            self._cancel_and_join()
            self._logger.info(
                "添加任务 dir:%s, subs:%s, max:%s, as:%s, rename:%s, backup:%s",
                request.source_dir,
                "Yes" if request.recursive else "no",
                request.max_axis if request.max_axis is not None else "none",
                request.target_format.value,
                request.rename_prefix or "-",
                "Yes" if request.backup else "no",
            )
            self._state.reset()
            self._state.set_running(True)
            cancel = threading.Event()
            thread = threading.Thread(
                target=self._run,
                args=(request, cancel),
                name="walk-worker",
            )
            self._cancel = cancel
            self._thread = thread
            thread.start()

    def stop(self) -> None:
        """请求取消，不阻塞；工作线程在下一个文件或目录检查点退出。"""

        cancel = self._cancel
        if cancel is not None:
            cancel.set()

    def status(self) -> RunStatus:
        return self._state.snapshot()

    def is_running(self) -> bool:
        return self._state.running

    def join(self, timeout: Optional[float] = None) -> bool:
        """等待当前工作线程结束，返回是否已结束。"""

        thread = self._thread
        if thread is None:
            return True
        thread.join(timeout)
        return not thread.is_alive()

    def shutdown(self, timeout: Optional[float] = None) -> bool:
        """进程退出前调用：取消并等待工作线程，避免遗留后台任务。"""

        self.stop()
        return self.join(timeout)

    def _cancel_and_join(self) -> None:
        if self._thread is None:
            return
        if self._thread.is_alive():
            self._logger.info("取消正在运行的任务并等待其结束")
        self.stop()
        self._thread.join()
        self._thread = None
        self._cancel = None

    def _run(self, request: TransformRequest, cancel: threading.Event) -> None:
        try:
            self._walk(Path(request.source_dir), request, cancel)
        except Exception as exc:  # noqa: BLE001
            self._logger.critical("遍历任务异常终止：%s", exc, exc_info=exc)
            self._state.record_fatal(str(exc))
        finally:
            self._state.set_running(False)
            snapshot = self._state.snapshot()
            self._logger.info(
                "任务%s：目录 %d 个，文件 %d 个，处理图片 %d 张，失败 %d 个",
                "已取消" if cancel.is_set() else "完成",
                snapshot.dirs_visited,
                snapshot.files_visited,
                snapshot.images_transformed,
                snapshot.files_failed,
            )

    def _walk(self, root: Path, request: TransformRequest, cancel: threading.Event) -> None:
        """深度优先前序遍历：先处理目录内文件，再按枚举顺序进入子目录。"""

        stack = [root]
        while stack:
            if cancel.is_set():
                return
            directory = stack.pop()
            if is_backup_dir(directory):
                continue

            self._state.add_dir()
            try:
                listing = list_directory(directory)
            except OSError as exc:
                self._logger.warning("无法访问目录 %s，跳过该子树: %s", directory, exc)
                continue

            for path in listing.files:
                if cancel.is_set():
                    return
                self._process_file(path, request)

            if request.recursive:
                stack.extend(reversed(listing.subdirs))

    def _process_file(self, path: Path, request: TransformRequest) -> None:
        self._state.add_file()
        try:
            outcome = self._transformer.transform(path, request, self._state.images)
        except Exception as exc:  # noqa: BLE001
            self._logger.exception("处理 %s 时发生未预期的异常：%s", path, exc)
            outcome = FileOutcome(source_path=path, status=OutcomeStatus.FAILED, message=str(exc))
        self._state.record(outcome)
