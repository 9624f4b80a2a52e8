"""备份、目标路径冲突处理与图像写入。"""

from __future__ import annotations

import io
import logging
import os
import shutil
from dataclasses import dataclass
from itertools import count
from pathlib import Path
from typing import Optional

from PIL import Image

from image_batch.core.config import BACKUP_DIR_NAME, JPEG_QUALITY, ConflictStrategy
from image_batch.core.exceptions import BackupError, ImageWriteError, InvalidConfigurationError
from image_batch.core.signature import ImageKind

LOGGER = logging.getLogger(__name__)

# 各编码器可直接写出的图像模式，其余模式先转换为 RGB。
_WRITABLE_MODES = {
    ImageKind.JPEG: {"L", "RGB", "CMYK"},
    ImageKind.PNG: {"1", "L", "LA", "I", "I;16", "P", "RGB", "RGBA"},
    ImageKind.BMP: {"1", "L", "P", "RGB"},
    ImageKind.GIF: {"1", "L", "P", "RGB", "RGBA"},
}


@dataclass(slots=True)
class DestinationDecision:
    """封装输出文件决策。"""

    destination: Path
    action: str  # write | overwrite | rename | skip
    note: Optional[str] = None


def decide_destination(source: Path, candidate: Path, strategy: ConflictStrategy) -> DestinationDecision:
    """根据冲突策略确定写出或重命名的目标路径。

    目标就是源文件本身（包括大小写不敏感文件系统上的同一文件）时不视为冲突，
    因为源文件会在写出前被删除或直接改名。
    """

    if not candidate.exists() or _is_same_file(source, candidate):
        return DestinationDecision(destination=candidate, action="write")

    existing_msg = f"目标已存在: {candidate.name}"

    if strategy == "overwrite":
        return DestinationDecision(destination=candidate, action="overwrite", note=existing_msg)
    if strategy == "skip":
        return DestinationDecision(destination=candidate, action="skip", note=existing_msg)
    if strategy == "rename":
        new_destination = _generate_renamed_path(candidate)
        return DestinationDecision(
            destination=new_destination,
            action="rename",
            note=f"{existing_msg} -> 重命名为 {new_destination.name}",
        )

    raise InvalidConfigurationError(f"未知的冲突策略: {strategy}")


def backup_file(source: Path, logger: logging.Logger = LOGGER) -> Path:
    """把原图复制到同级的备份目录。

    备份目录按需创建；同名备份已存在时视为已经备份过，只记录警告。
    """

    backup_dir = source.parent / BACKUP_DIR_NAME
    destination = backup_dir / source.name
    logger.info("\t备份到 %s", destination)

    try:
        backup_dir.mkdir(exist_ok=True)
        if destination.exists():
            logger.warning("%s 的备份已存在，跳过复制", source)
            return destination
        shutil.copy2(source, destination)
    except OSError as exc:
        raise BackupError(f"备份失败: {source}: {exc}") from exc
    return destination


def rename_file(source: Path, destination: Path) -> None:
    try:
        os.replace(source, destination)
    except OSError as exc:
        raise ImageWriteError(f"重命名失败: {source} -> {destination}: {exc}") from exc


def encode_image(image: Image.Image, kind: ImageKind) -> bytes:
    """按目标类型在内存中编码图片。JPEG 使用固定质量，PNG 为无损。

    编码失败时源文件尚未被改动，调用方可以安全地放弃该文件。
    """

    save_params: dict = {}
    if kind is ImageKind.JPEG:
        save_params.update(quality=JPEG_QUALITY, optimize=True)
    elif kind is ImageKind.PNG:
        save_params.update(optimize=True)

    buffer = io.BytesIO()
    try:
        image_to_save = image
        if image.mode not in _WRITABLE_MODES[kind]:
            image_to_save = _convert_to_rgb(image)
        image_to_save.save(buffer, format=kind.value, **save_params)
    except (OSError, ValueError) as exc:
        raise ImageWriteError(f"编码为 {kind.name} 失败: {exc}") from exc
    return buffer.getvalue()


def write_encoded(data: bytes, destination: Path) -> None:
    try:
        destination.write_bytes(data)
    except OSError as exc:
        raise ImageWriteError(f"写入文件失败: {destination}: {exc}") from exc


def _convert_to_rgb(img: Image.Image) -> Image.Image:
    """将任意模式图像转换为 RGB。"""

    if img.mode in {"RGBA", "LA"} or (img.mode == "P" and "transparency" in img.info):
        # 透明区域与白色背景混合。
        rgba = img.convert("RGBA")
        background = Image.new("RGB", img.size, (255, 255, 255))
        background.paste(rgba, mask=rgba.split()[-1])
        return background

    return img.convert("RGB")


def _is_same_file(source: Path, candidate: Path) -> bool:
    if source == candidate:
        return True
    try:
        return os.path.samefile(source, candidate)
    except OSError:
        return False


def _generate_renamed_path(destination: Path) -> Path:
    """在 rename 策略下生成新的文件名。"""

    stem = destination.stem
    suffix = destination.suffix

    for idx in count(1):
        candidate = destination.with_name(f"{stem}_{idx}{suffix}")
        if not candidate.exists():
            return candidate

    # 理论上不会执行到此处
    return destination
