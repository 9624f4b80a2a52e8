"""图片解码。"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import BinaryIO

from PIL import Image, UnidentifiedImageError

from image_batch.core.exceptions import ImageLoadingError

LOGGER = logging.getLogger(__name__)


def load_image(stream: BinaryIO, path: Path) -> Image.Image:
    """从已打开的流完整解码图片。

    返回值为新的 Image 对象，与流无关，调用者负责关闭。不做 EXIF 旋转与模式转换。
    """

    stream.seek(0)
    try:
        with Image.open(stream) as img:
            img.load()
            return img.copy()
    except (UnidentifiedImageError, OSError, Image.DecompressionBombError) as exc:
        LOGGER.debug("无法解码图像文件 %s: %s", path, exc)
        raise ImageLoadingError(f"无法加载图像: {path}: {exc}") from exc
