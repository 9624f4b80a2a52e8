"""处理任务的配置模型。"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Union

from image_batch.core.signature import ImageKind

BACKUP_DIR_NAME = "image_batch_backup"
MIN_AXIS = 5
MAX_AXIS = 32000
JPEG_QUALITY = 90

ConflictStrategy = str  # rename | skip | overwrite
CONFLICT_STRATEGIES = ("rename", "skip", "overwrite")


class TargetFormat(Enum):
    """目标输出格式；UNCHANGED 表示沿用识别出的类型。"""

    UNCHANGED = "unchanged"
    JPEG = "jpeg"
    PNG = "png"
    BMP = "bmp"
    GIF = "gif"

    def resolve(self, detected: ImageKind) -> ImageKind:
        """结合识别结果得到最终写出的类型。"""

        if self is TargetFormat.UNCHANGED:
            return detected
        return ImageKind[self.name]


@dataclass(frozen=True, slots=True)
class TransformRequest:
    """单次运行的不可变参数。"""

    source_dir: Path
    recursive: bool = True
    max_axis: Optional[int] = None  # None 表示不限制尺寸
    rename_prefix: str = ""
    target_format: TargetFormat = TargetFormat.UNCHANGED
    backup: bool = True
    conflict_strategy: ConflictStrategy = "rename"

    @property
    def renames(self) -> bool:
        return bool(self.rename_prefix)


@dataclass(slots=True)
class TaskParameters:
    """调用方（界面或命令行）提交的原始参数，需经 TaskController 校验。"""

    source_dir: Union[str, Path]
    recursive: bool = True
    resize: bool = False
    max_axis: Optional[int] = None
    rename: bool = False
    rename_text: str = ""
    target_format: TargetFormat = TargetFormat.UNCHANGED
    backup: bool = True
    conflict_strategy: ConflictStrategy = "rename"
