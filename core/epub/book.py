"""EPub：解析入口与按 id 读取章节、图片、文件。

解析结果保存在一个不可变的 BookState 中，解析成功后整体替换，
解析过程中或失败后外部只会看到空状态，不会看到半成品。
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

from loguru import logger

from core.config import CHAPTER_MEDIA_TYPES, DEFAULT_IMAGE_ROOT, DEFAULT_LINK_ROOT, normalize_root
from core.epub.archive import EpubArchive, EpubSource, parent_dir
from core.epub.errors import ArchiveError, ItemNotFoundError, MediaTypeError
from core.epub.models import (
    GuideReference,
    ManifestItem,
    Metadata,
    Resource,
    Spine,
    TocElement,
)
from core.epub.navigation import resolve_toc
from core.epub.parser import DEFAULT_VERSION, resolve_package
from core.epub.renderer import render_chapter

DRM_ENTRY = "META-INF/encryption.xml"


@dataclass(frozen=True)
class BookState:
    archive: Optional[EpubArchive] = None
    rootfile: str = ""
    version: str = DEFAULT_VERSION
    metadata: Metadata = field(default_factory=Metadata)
    manifest: dict[str, ManifestItem] = field(default_factory=dict)
    guide: list[GuideReference] = field(default_factory=list)
    spine: Spine = field(default_factory=Spine)
    toc: list[TocElement] = field(default_factory=list)


CompletionCallback = Callable[["EPub", Optional[BaseException]], None]


class EPub:
    def __init__(
        self,
        source: EpubSource,
        image_root: str | None = None,
        link_root: str | None = None,
    ) -> None:
        if not isinstance(source, (str, Path, bytes)):
            # 文件对象只能读一次，重复 parse 需要保留内容
            source = source.read()
        self.source = source
        self.image_root = normalize_root(image_root, DEFAULT_IMAGE_ROOT)
        self.link_root = normalize_root(link_root, DEFAULT_LINK_ROOT)
        self._state = BookState()
        self._callbacks: list[CompletionCallback] = []

    # ── 解析 ──────────────────────────────────────────────────────────────

    def parse(self) -> None:
        """解析整本书；失败时抛出 EpubError 的子类，状态保持为空。"""
        self._state = BookState()
        try:
            state = self._resolve()
        except Exception as e:
            self._notify(e)
            raise
        self._state = state
        logger.info(
            "parsed  title={!r} manifest={} flow={} toc={}",
            state.metadata.title, len(state.manifest), len(state.spine.contents), len(state.toc),
        )
        self._notify(None)

    def _resolve(self) -> BookState:
        archive = EpubArchive.open(self.source)
        package = resolve_package(archive)

        toc: list[TocElement] = []
        if package.spine.toc is not None:
            toc = resolve_toc(archive, package.spine.toc, package.manifest)

        return BookState(
            archive=archive,
            rootfile=package.rootfile,
            version=package.version,
            metadata=package.metadata,
            manifest=package.manifest,
            guide=package.guide,
            spine=package.spine,
            toc=toc,
        )

    def on_complete(self, callback: CompletionCallback) -> None:
        """注册解析完成回调：callback(book, None) 表示成功，否则传入异常。"""
        self._callbacks.append(callback)

    def _notify(self, error: BaseException | None) -> None:
        for callback in self._callbacks:
            callback(self, error)

    async def parse_async(self) -> None:
        await asyncio.to_thread(self.parse)

    # ── 解析结果 ──────────────────────────────────────────────────────────

    @property
    def metadata(self) -> Metadata:
        return self._state.metadata

    @property
    def manifest(self) -> dict[str, ManifestItem]:
        return self._state.manifest

    @property
    def guide(self) -> list[GuideReference]:
        return self._state.guide

    @property
    def spine(self) -> Spine:
        return self._state.spine

    @property
    def flow(self) -> list[ManifestItem]:
        return self._state.spine.contents

    @property
    def toc(self) -> list[TocElement]:
        return self._state.toc

    @property
    def version(self) -> str:
        return self._state.version

    @property
    def rootfile(self) -> str:
        return self._state.rootfile

    # ── 读取 ──────────────────────────────────────────────────────────────

    def get_chapter(self, item_id: str) -> str:
        """返回改写过资源引用、去掉脚本与样式的章节 HTML。"""
        state = self._state
        raw = self._chapter_text(state, item_id)
        return render_chapter(
            raw,
            state.manifest,
            parent_dir(state.rootfile),
            self.image_root,
            self.link_root,
        )

    def get_chapter_raw(self, item_id: str) -> str:
        return self._chapter_text(self._state, item_id)

    def get_image(self, item_id: str) -> Resource:
        item = self._item(item_id)
        if not item.media_type.lower().strip().startswith("image/"):
            raise MediaTypeError("Invalid mime type for image", item.media_type)
        return self.get_file(item_id)

    def get_file(self, item_id: str) -> Resource:
        item = self._item(item_id)
        return Resource(data=self._archive().read(item.href), media_type=item.media_type)

    def read_file(self, name: str, encoding: str | None = None) -> bytes | str:
        data = self._archive().read(name)
        if encoding:
            return data.decode(encoding)
        return data

    def has_drm(self) -> bool:
        return self._archive().has(DRM_ENTRY)

    async def get_chapter_async(self, item_id: str) -> str:
        return await asyncio.to_thread(self.get_chapter, item_id)

    async def get_image_async(self, item_id: str) -> Resource:
        return await asyncio.to_thread(self.get_image, item_id)

    async def get_file_async(self, item_id: str) -> Resource:
        return await asyncio.to_thread(self.get_file, item_id)

    @staticmethod
    def _chapter_text(state: BookState, item_id: str) -> str:
        # manifest 与 archive 取自同一份快照
        item = state.manifest.get(item_id)
        if item is None:
            raise ItemNotFoundError(item_id)
        if item.media_type not in CHAPTER_MEDIA_TYPES:
            raise MediaTypeError("Invalid mime type for chapter", item.media_type)
        if state.archive is None:
            raise ArchiveError("Book has not been parsed")
        return state.archive.read_text(item.href)

    def _item(self, item_id: str) -> ManifestItem:
        item = self._state.manifest.get(item_id)
        if item is None:
            raise ItemNotFoundError(item_id)
        return item

    def _archive(self) -> EpubArchive:
        if self._state.archive is None:
            raise ArchiveError("Book has not been parsed")
        return self._state.archive

    def __repr__(self) -> str:
        name = self.source if isinstance(self.source, (str, Path)) else type(self.source).__name__
        return f"<EPub {name} title={self._state.metadata.title!r}>"
