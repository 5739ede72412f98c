"""NCX 目录解析：递归遍历 navMap，展平为带层级的有序列表。"""

from __future__ import annotations

import math

from loguru import logger

from core.epub.archive import EpubArchive, join_path, parent_dir
from core.epub.errors import TocParseError
from core.epub.models import ManifestItem, TocElement
from core.epub.xmltree import XmlNode, XmlSyntaxError, parse_xml

# 防止病态或循环的 NCX 无限递归，超过的分支直接丢弃
MAX_TOC_DEPTH = 8


def resolve_toc(
    archive: EpubArchive,
    toc_item: ManifestItem,
    manifest: dict[str, ManifestItem],
) -> list[TocElement]:
    """读取并解析导航文档，返回展平的目录。"""
    href_index = {item.href: item_id for item_id, item in manifest.items()}

    data = archive.read(toc_item.href)
    try:
        root = parse_xml(data)
    except XmlSyntaxError as e:
        raise TocParseError(f"Parsing container XML failed in TOC: {e}", e.line, e.column) from e

    nav_map = root.first("navMap")
    if nav_map is None or nav_map.first("navPoint") is None:
        logger.debug("toc  no navMap in {}", toc_item.href)
        return []

    toc = walk_nav_map(nav_map.all("navPoint"), parent_dir(toc_item.href), manifest, href_index)
    logger.debug("toc  entries={}", len(toc))
    return toc


def walk_nav_map(
    nav_points: list[XmlNode],
    base_dir: str,
    manifest: dict[str, ManifestItem],
    href_index: dict[str, str],
    level: int = 0,
) -> list[TocElement]:
    """深度优先遍历 navPoint，父节点条目在前，子节点条目紧随其后。"""
    if level >= MAX_TOC_DEPTH:
        return []

    output: list[TocElement] = []
    for point in nav_points:
        label = point.first("navLabel")
        if label is not None:
            text = label.first("text")
            # 空标题合法
            title = text.text.strip() if text is not None else ""
            order = _parse_order(point.attr("playOrder"))

            content = point.first("content")
            src = (content.attr("src") or "").strip() if content is not None else ""
            if src:
                href = join_path(base_dir, src)
                item_id = href_index.get(href)
                if item_id is not None:
                    element = TocElement.from_manifest(
                        manifest[item_id], level=level, order=order, title=title
                    )
                else:
                    element = TocElement(
                        level=level,
                        order=order,
                        title=title,
                        href=href,
                        id=(point.attr("id") or "").strip(),
                    )
                output.append(element)

        children = point.all("navPoint")
        if children:
            output.extend(walk_nav_map(children, base_dir, manifest, href_index, level + 1))
    return output


def _parse_order(value: str | None) -> float:
    if not value:
        return 0
    try:
        order = float(value.strip())
    except ValueError:
        return 0
    if not math.isfinite(order) or order < 0:
        return 0
    # 整数顺序号保持 int，小数原样保留
    return int(order) if order.is_integer() else order
