"""目录枚举逻辑。"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from image_batch.core.config import BACKUP_DIR_NAME

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class DirectoryListing:
    """单个目录的直接子项，保持文件系统返回的顺序。"""

    files: list[Path] = field(default_factory=list)
    subdirs: list[Path] = field(default_factory=list)


def is_backup_dir(path: Path) -> bool:
    return path.name == BACKUP_DIR_NAME


def list_directory(directory: Path) -> DirectoryListing:
    """列出目录中的文件与子目录。

    目录不可访问或已消失时抛出 OSError，由调用方决定是否跳过整棵子树。
    符号链接指向的目录不会出现在 subdirs 中，避免循环遍历。
    """

    listing = DirectoryListing()
    with os.scandir(directory) as entries:
        for entry in entries:
            try:
                if entry.is_dir(follow_symlinks=False):
                    listing.subdirs.append(Path(entry.path))
                elif entry.is_file():
                    listing.files.append(Path(entry.path))
            except OSError as exc:
                LOGGER.debug("无法读取目录项 %s: %s", entry.path, exc)
    return listing
