"""文件名编解码模块

从单个文件名中解析扩展名、基础名（记录 id）和版本号。
规范文件名为 `<base>.<ext>`，待处理文件夹中的工作副本为 `<base>~<N>.<ext>`。

所有函数都是纯函数，对任何输入都不会抛出异常：
    >>> extension_of("IMG_1~2.JPG")
    'jpg'
    >>> base_of("IMG_1~2.jpg")
    'IMG_1'
    >>> version_of("IMG_1~2.jpg")
    2
"""

import re
from typing import Iterable

# 版本后缀必须位于去掉扩展名后的末尾，且前面至少还有一个字符
_VERSION_SUFFIX = re.compile(r"^(.+)~(\d+)$")


def _split(name: str) -> tuple[str, str]:
    """拆分为（去掉扩展名的部分，原始大小写的扩展名）"""
    stem, dot, ext = name.rpartition(".")
    if not dot:
        return name, ""
    return stem, ext


def extension_of(name: str) -> str:
    """最后一个 '.' 之后的部分（小写）；没有 '.' 时返回空字符串"""
    return _split(name)[1].lower()


def base_of(name: str) -> str:
    """去掉扩展名和末尾 `~<digits>` 版本后缀后的基础名"""
    stem = _split(name)[0]
    match = _VERSION_SUFFIX.match(stem)
    return match.group(1) if match else stem


def version_of(name: str) -> int:
    """末尾 `~<digits>` 的整数值，没有版本后缀时为 0"""
    stem = _split(name)[0]
    match = _VERSION_SUFFIX.match(stem)
    return int(match.group(2)) if match else 0


def canonical_name(base: str, extension: str) -> str:
    """由基础名和扩展名拼出不带版本后缀的规范文件名"""
    return f"{base}.{extension}" if extension else base


def is_supported(name: str, allowed_extensions: Iterable[str]) -> bool:
    return extension_of(name) in allowed_extensions


def is_video_extension(extension: str, video_extensions: Iterable[str]) -> bool:
    return extension.lower() in video_extensions
