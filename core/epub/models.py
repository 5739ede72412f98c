"""EPUB 结构的数据模型：元数据、manifest、spine、guide、目录。"""

from __future__ import annotations

from dataclasses import dataclass, field, fields

from core.epub.archive import parent_dir


@dataclass(frozen=True)
class Metadata:
    creator: str = ""
    creator_file_as: str = ""
    title: str = ""
    language: str = ""         # 已转小写
    subject: str = ""          # subjects 的第一项
    subjects: list[str] = field(default_factory=list)
    date: str = ""
    description: str = ""
    publisher: str = ""
    source: str = ""
    uuid: str = ""             # 去掉 urn:uuid: 前缀并转大写
    # meta 标签与带 scheme 的 identifier
    extra: dict[str, str] = field(default_factory=dict)

    def get(self, name: str, default: str | None = None) -> str | list[str] | None:
        """按名称取值：先查固定字段，再查 extra。"""
        if name != "extra" and name in _METADATA_FIELDS:
            return getattr(self, name)
        return self.extra.get(name, default)


_METADATA_FIELDS = frozenset(f.name for f in fields(Metadata))


@dataclass(frozen=True)
class ManifestItem:
    id: str
    href: str          # 相对于归档根目录
    media_type: str
    attributes: dict[str, str] = field(default_factory=dict)  # 其余声明的属性


@dataclass(frozen=True)
class GuideReference:
    type: str
    title: str
    href: str          # 相对于归档根目录
    attributes: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class Spine:
    toc: ManifestItem | None = None
    contents: list[ManifestItem] = field(default_factory=list)


@dataclass(frozen=True)
class TocElement:
    level: int
    order: float
    title: str
    href: str
    id: str
    media_type: str | None = None   # 仅当对应 manifest 条目时有值
    attributes: dict[str, str] = field(default_factory=dict)

    @property
    def is_manifest_item(self) -> bool:
        return self.media_type is not None

    @classmethod
    def from_manifest(cls, item: ManifestItem, *, level: int, order: float, title: str) -> TocElement:
        return cls(
            level=level,
            order=order,
            title=title,
            href=item.href,
            id=item.id,
            media_type=item.media_type,
            attributes=dict(item.attributes),
        )


@dataclass(frozen=True)
class PackageDocument:
    """OPF 解析结果。"""
    rootfile: str
    version: str
    metadata: Metadata
    manifest: dict[str, ManifestItem]
    guide: list[GuideReference]
    spine: Spine

    @property
    def base_dir(self) -> str:
        return parent_dir(self.rootfile)


@dataclass(frozen=True)
class Resource:
    data: bytes = field(repr=False)
    media_type: str
