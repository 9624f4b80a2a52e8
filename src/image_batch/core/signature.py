"""基于文件头魔数的图片类型识别。"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import BinaryIO, Optional, Union

IMAGE_EXTENSIONS = {".jpg", ".png", ".bmp", ".gif"}


class ImageKind(Enum):
    """可识别的图片类型，值为 Pillow 的格式名。"""

    JPEG = "JPEG"
    BMP = "BMP"
    GIF = "GIF"
    PNG = "PNG"

    @property
    def extension(self) -> str:
        """以该类型写出文件时使用的扩展名。"""

        return _EXTENSIONS[self]


_EXTENSIONS = {
    ImageKind.JPEG: ".jpg",
    ImageKind.BMP: ".bmp",
    ImageKind.GIF: ".gif",
    ImageKind.PNG: ".png",
}

# 首字节决定候选类型，其余字节必须完整匹配。
_SIGNATURES: dict[int, tuple[ImageKind, bytes]] = {
    0xFF: (ImageKind.JPEG, bytes.fromhex("FFD8")),
    0x42: (ImageKind.BMP, bytes.fromhex("424D")),
    0x47: (ImageKind.GIF, bytes.fromhex("474946")),
    0x89: (ImageKind.PNG, bytes.fromhex("89504E470D0A1A0A")),
}

HEADER_SIZE = max(len(magic) for _, magic in _SIGNATURES.values())


@dataclass(frozen=True, slots=True)
class Detection:
    """内容识别结果：kind 为 None 表示无法识别。"""

    kind: Optional[ImageKind] = None

    @property
    def matched(self) -> bool:
        return self.kind is not None


UNRECOGNIZED = Detection()


def classify_bytes(header: bytes) -> Detection:
    """根据文件头字节判断图片类型。"""

    if not header:
        return UNRECOGNIZED

    candidate = _SIGNATURES.get(header[0])
    if candidate is None:
        return UNRECOGNIZED

    kind, magic = candidate
    if header[: len(magic)] != magic:
        return UNRECOGNIZED
    return Detection(kind)


def classify(stream: BinaryIO) -> Detection:
    """从流的起始位置读取文件头并识别类型。"""

    if stream.seekable():
        stream.seek(0)
    return classify_bytes(stream.read(HEADER_SIZE))


def classify_file(path: Union[str, Path]) -> Detection:
    with Path(path).open("rb") as handle:
        return classify(handle)


def split_name(path: Union[str, Path]) -> tuple[str, str]:
    """拆分文件名为 (主名, 扩展名)。

    与 Path.suffix 不同，".jpg" 这类只有扩展名的文件名拆分为 ("", ".jpg")。
    """

    name = Path(path).name
    dot = name.rfind(".")
    if dot < 0:
        return name, ""
    return name[:dot], name[dot:]


def has_image_extension(path: Union[str, Path]) -> bool:
    """按扩展名做快速预筛选（不区分大小写）。"""

    return split_name(path)[1].lower() in IMAGE_EXTENSIONS
