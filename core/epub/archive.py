"""EPUB 归档访问：按名称读取 ZIP 条目。

每次读取都重新打开 ZIP，已解析的书可以被多个请求并发读取。
"""

from __future__ import annotations

import io
import posixpath
import zipfile
from pathlib import Path, PurePosixPath
from typing import BinaryIO, Union

from loguru import logger

from core.epub.errors import ArchiveError, EntryNotFoundError

EpubSource = Union[str, Path, bytes, BinaryIO]


class EpubArchive:
    """只读的 ZIP 条目访问器。"""

    def __init__(self, source: str | Path | bytes, names: list[str]) -> None:
        self._source = source
        self._names = names

    @classmethod
    def open(cls, source: EpubSource) -> EpubArchive:
        """打开归档并读取条目列表；无法打开或为空时抛出 ArchiveError。"""
        if isinstance(source, (str, Path)):
            source = Path(source)
        elif not isinstance(source, bytes):
            # 文件对象：一次性读入内存
            source = source.read()

        try:
            with zipfile.ZipFile(cls._as_file(source), "r") as zf:
                names = zf.namelist()
        except (OSError, zipfile.BadZipFile) as e:
            raise ArchiveError("Invalid/missing file") from e

        if not names:
            raise ArchiveError("No files in archive")

        logger.debug("archive opened  entries={}", len(names))
        return cls(source, names)

    def names(self) -> list[str]:
        return list(self._names)

    def has(self, name: str) -> bool:
        return name in self._names

    def find(self, name: str) -> str | None:
        """大小写不敏感地查找条目，返回归档内的实际名称。"""
        wanted = name.lower()
        for entry in self._names:
            if entry.lower() == wanted:
                return entry
        return None

    def read(self, name: str) -> bytes:
        if name not in self._names:
            raise EntryNotFoundError(f"Entry not found: {name}")
        with zipfile.ZipFile(self._as_file(self._source), "r") as zf:
            return zf.read(name)

    def read_text(self, name: str, encoding: str = "utf-8", errors: str = "strict") -> str:
        return self.read(name).decode(encoding, errors)

    @staticmethod
    def _as_file(source: Path | bytes) -> Path | io.BytesIO:
        if isinstance(source, bytes):
            return io.BytesIO(source)
        return source


# ── 路径工具 ────────────────────────────────────────────────────────────────


def parent_dir(path: str) -> str:
    """ZIP 内路径所在目录；位于根目录时返回空字符串。"""
    parent = str(PurePosixPath(path).parent)
    return "" if parent == "." else parent


def join_path(base_dir: str, href: str) -> str:
    """将目录和相对 href 拼成 ZIP 内路径（已规范化）。"""
    href = href.strip()
    if not href:
        return ""
    path = f"{base_dir}/{href}" if base_dir else href
    return posixpath.normpath(path)
