"""全局配置模型。"""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_IMAGE_ROOT = "/images/"
DEFAULT_LINK_ROOT = "/links/"


def normalize_root(value: str | None, default: str) -> str:
    """URL 前缀：空值使用默认值，保证以 / 结尾。"""
    root = (value or default).strip()
    if not root.endswith("/"):
        root += "/"
    return root


@dataclass
class ReaderConfig:
    # 章节中图片与链接改写后使用的 URL 前缀
    image_root: str = DEFAULT_IMAGE_ROOT
    link_root: str = DEFAULT_LINK_ROOT

    # Web 服务
    host: str = "127.0.0.1"
    port: int = 8080

    def effective_image_root(self) -> str:
        return normalize_root(self.image_root, DEFAULT_IMAGE_ROOT)

    def effective_link_root(self) -> str:
        return normalize_root(self.link_root, DEFAULT_LINK_ROOT)


# EPUB 中可作为章节渲染的 media-type
CHAPTER_MEDIA_TYPES: frozenset[str] = frozenset({
    "application/xhtml+xml",
    "image/svg+xml",
})
