"""单个文件的判定与转换。"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Optional

from PIL import Image

from image_batch.core.config import TransformRequest
from image_batch.core.exceptions import ImageBatchError
from image_batch.core.models import FileOutcome, OutcomeStatus
from image_batch.core.output_manager import (
    backup_file,
    decide_destination,
    encode_image,
    rename_file,
    write_encoded,
)
from image_batch.core.signature import ImageKind, classify, has_image_extension, split_name
from image_batch.processing.image_loader import load_image
from image_batch.processing.sizing import compute_scaled_size, downscale
from image_batch.utils.logging import NANO

LOGGER = logging.getLogger(__name__)

ConsoleCallback = Optional[Callable[[str], None]]

NOT_AN_IMAGE = "不是图片文件"
NO_CHANGE = "无需修改"


def sequential_name(prefix: str, index: int) -> str:
    """顺序重命名：第一个文件直接使用前缀，之后依次追加序号。"""

    return prefix if index == 0 else f"{prefix}{index}"


class FileTransformer:
    """对单个文件执行类型转换、缩放与重命名。

    除无法恢复的 I/O 或解码错误外，"无事可做" 都是正常结果；
    错误不会抛出，而是以 FAILED 结果返回。
    """

    def __init__(self, logger: Optional[logging.Logger] = None, console: ConsoleCallback = None) -> None:
        self._logger = logger or LOGGER
        self._console = console

    def transform(self, path: Path, request: TransformRequest, sequence_index: int = 0) -> FileOutcome:
        path = Path(path)
        if not has_image_extension(path):
            self._logger.log(NANO, "跳过（扩展名不符）：%s", path)
            return FileOutcome(source_path=path, status=OutcomeStatus.SKIPPED, message=NOT_AN_IMAGE)

        try:
            with path.open("rb") as handle:
                detection = classify(handle)
                if not detection.matched:
                    self._logger.debug("跳过（内容不是可识别的图片）：%s", path)
                    return FileOutcome(source_path=path, status=OutcomeStatus.SKIPPED, message=NOT_AN_IMAGE)
                self._logger.info("处理 %s", path)
                image = load_image(handle, path)
        except (OSError, ImageBatchError) as exc:
            return self._failed(path, exc)

        try:
            return self._apply(path, image, detection.kind, request, sequence_index)
        except (OSError, ImageBatchError) as exc:
            return self._failed(path, exc)
        finally:
            image.close()

    def _apply(
        self,
        path: Path,
        image: Image.Image,
        detected: ImageKind,
        request: TransformRequest,
        sequence_index: int,
    ) -> FileOutcome:
        needs_rewrite = False

        target = request.target_format.resolve(detected)
        if target is not detected:
            needs_rewrite = True
            self._logger.info("\t文件类型变更")
            self._report(f"文件 {path.name} 转换为 {target.name}")

        new_size = compute_scaled_size(image.size, request.max_axis)
        if new_size is not None:
            needs_rewrite = True
            width, height = image.size
            self._report(f"文件 {path.name} 从 {width},{height} 缩小到 {new_size[0]},{new_size[1]}")

        base, suffix = split_name(path)
        stem = sequential_name(request.rename_prefix, sequence_index) if request.renames else base

        if not needs_rewrite:
            if not request.renames:
                self._logger.info("\t%s", NO_CHANGE)
                return FileOutcome(source_path=path, status=OutcomeStatus.SKIPPED, message=NO_CHANGE)
            return self._rename_only(path, path.with_name(stem + suffix), request)

        decision = decide_destination(path, path.with_name(stem + target.extension), request.conflict_strategy)
        if decision.action == "skip":
            self._logger.warning("\t跳过写出：%s", decision.note)
            return FileOutcome(source_path=path, status=OutcomeStatus.SKIPPED, message=decision.note)
        if decision.note:
            self._logger.warning("\t%s", decision.note)

        output = downscale(image, new_size) if new_size is not None else image
        try:
            data = encode_image(output, target)
        finally:
            if output is not image:
                output.close()

        if request.backup:
            backup_file(path, self._logger)
        path.unlink()
        self._logger.info("\t保存为 %s", decision.destination)
        write_encoded(data, decision.destination)
        return FileOutcome(
            source_path=path,
            status=OutcomeStatus.CONVERTED,
            output_path=decision.destination,
            message=decision.note,
        )

    def _rename_only(self, path: Path, candidate: Path, request: TransformRequest) -> FileOutcome:
        decision = decide_destination(path, candidate, request.conflict_strategy)
        if decision.action == "skip":
            self._logger.warning("\t跳过重命名：%s", decision.note)
            return FileOutcome(source_path=path, status=OutcomeStatus.SKIPPED, message=decision.note)
        if decision.destination == path:
            self._logger.info("\t文件名已符合要求")
            return FileOutcome(source_path=path, status=OutcomeStatus.SKIPPED, message=NO_CHANGE)

        if request.backup:
            backup_file(path, self._logger)
        self._logger.info("\t重命名 %s 为 %s", path, decision.destination)
        rename_file(path, decision.destination)
        self._report(f"重命名 {path} 为 {decision.destination}")
        return FileOutcome(
            source_path=path,
            status=OutcomeStatus.RENAMED,
            output_path=decision.destination,
            message=decision.note,
        )

    def _report(self, action: str) -> None:
        self._logger.info("\t%s", action)
        if self._console is not None:
            self._console(action)

    def _failed(self, path: Path, exc: Exception) -> FileOutcome:
        self._logger.error("处理 %s 失败: %s", path, exc)
        return FileOutcome(source_path=path, status=OutcomeStatus.FAILED, message=str(exc))
