"""核心数据模型定义。"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional


class OutcomeStatus(str, Enum):
    """单个文件的处理结果类别。"""

    SKIPPED = "skipped"
    RENAMED = "renamed"
    CONVERTED = "converted"
    FAILED = "failed"


@dataclass(slots=True)
class FileOutcome:
    """记录单个文件的处理结果（仅用于计数与日志）。"""

    source_path: Path
    status: OutcomeStatus
    output_path: Optional[Path] = None
    message: Optional[str] = None

    @property
    def transformed(self) -> bool:
        return self.status in (OutcomeStatus.RENAMED, OutcomeStatus.CONVERTED)
