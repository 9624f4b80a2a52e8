"""项目内使用的自定义异常定义。"""


class ImageBatchError(Exception):
    """基础异常类型。"""


class InvalidConfigurationError(ImageBatchError):
    """任务参数不合法时抛出。"""


class ImageLoadingError(ImageBatchError):
    """图片解码失败。"""


class ImageWriteError(ImageBatchError):
    """输出写入失败。"""


class BackupError(ImageBatchError):
    """备份原图失败（目标已存在的情况除外）。"""
