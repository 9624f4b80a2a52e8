"""按最长边限制计算缩放尺寸。"""

from __future__ import annotations

from typing import Optional

from PIL import Image


def compute_scaled_size(size: tuple[int, int], max_axis: Optional[int]) -> Optional[tuple[int, int]]:
    """计算等比缩小后的尺寸；无需缩小时返回 None。

    缩放系数 s = min(L/W, L/H)，只会缩小不会放大。
    """

    if max_axis is None:
        return None

    width, height = size
    if width <= max_axis and height <= max_axis:
        return None

    ratio = min(max_axis / width, max_axis / height)
    new_width = max(1, round(width * ratio))
    new_height = max(1, round(height * ratio))
    return new_width, new_height


def downscale(image: Image.Image, size: tuple[int, int]) -> Image.Image:
    return image.resize(size, Image.LANCZOS)
