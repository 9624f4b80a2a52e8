"""面向调用方的任务控制器：校验参数后委托给 WalkScheduler。"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Optional

from image_batch.core.config import (
    CONFLICT_STRATEGIES,
    MAX_AXIS,
    MIN_AXIS,
    TaskParameters,
    TransformRequest,
)
from image_batch.core.exceptions import InvalidConfigurationError
from image_batch.core.progress import RunStatus
from image_batch.processing.scheduler import WalkScheduler
from image_batch.processing.transformer import ConsoleCallback, FileTransformer

LOGGER = logging.getLogger(__name__)

INVALID_FILENAME_RE = re.compile(r'[<>:"/\\|?*\x00-\x1f]')


def build_request(params: TaskParameters) -> TransformRequest:
    """校验调用方参数并生成不可变的 TransformRequest。"""

    source_text = str(params.source_dir).strip() if params.source_dir is not None else ""
    if not source_text:
        raise InvalidConfigurationError("未指定源目录")
    source_dir = Path(source_text).expanduser()
    if not source_dir.is_dir():
        raise InvalidConfigurationError(f"源目录不存在: {source_dir}")

    max_axis: Optional[int] = None
    if params.resize:
        if params.max_axis is None:
            raise InvalidConfigurationError("已启用尺寸限制但未提供最长边数值")
        if not MIN_AXIS <= params.max_axis <= MAX_AXIS:
            raise InvalidConfigurationError(f"尺寸限制 {params.max_axis} 必须在 {MIN_AXIS} 到 {MAX_AXIS} 之间")
        max_axis = params.max_axis

    rename_prefix = ""
    if params.rename:
        if not params.rename_text:
            raise InvalidConfigurationError("已启用重命名但未提供文件名")
        if INVALID_FILENAME_RE.search(params.rename_text) or params.rename_text in {".", ".."}:
            raise InvalidConfigurationError(f"重命名文本包含非法字符: {params.rename_text!r}")
        rename_prefix = params.rename_text

    if params.conflict_strategy not in CONFLICT_STRATEGIES:
        raise InvalidConfigurationError(f"未知的冲突策略: {params.conflict_strategy}")

    return TransformRequest(
        source_dir=source_dir,
        recursive=params.recursive,
        max_axis=max_axis,
        rename_prefix=rename_prefix,
        target_format=params.target_format,
        backup=params.backup,
        conflict_strategy=params.conflict_strategy,
    )


class TaskController:
    """启动、停止、查询与关闭批处理任务的薄封装。"""

    def __init__(
        self,
        scheduler: Optional[WalkScheduler] = None,
        *,
        logger: Optional[logging.Logger] = None,
        console: ConsoleCallback = None,
    ) -> None:
        self._logger = logger or LOGGER
        if scheduler is None:
            scheduler = WalkScheduler(FileTransformer(logger=self._logger, console=console), logger=self._logger)
        self._scheduler = scheduler

    def start(self, params: TaskParameters) -> TransformRequest:
        """校验参数并启动任务；参数不合法时抛出 InvalidConfigurationError 且不改变任何状态。"""

        try:
            request = build_request(params)
        except InvalidConfigurationError as exc:
            self._logger.warning("参数校验失败：%s", exc)
            raise
        self._scheduler.start(request)
        return request

    def stop(self) -> None:
        self._scheduler.stop()

    def status(self) -> str:
        return self._scheduler.status().describe()

    def snapshot(self) -> RunStatus:
        return self._scheduler.status()

    def is_running(self) -> bool:
        return self._scheduler.is_running()

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self._scheduler.join(timeout)

    def shutdown(self, timeout: Optional[float] = None) -> bool:
        return self._scheduler.shutdown(timeout)
