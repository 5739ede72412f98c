"""EPUB 包解析：校验 mimetype → 读取 container.xml → 解析 OPF。

返回的 PackageDocument 中所有 href 都已转换为相对于归档根目录的路径。
"""

from __future__ import annotations

import re

from loguru import logger

from core.epub.archive import EpubArchive, join_path, parent_dir
from core.epub.errors import (
    ContainerError,
    MimetypeError,
    RootfileError,
    XmlParseError,
)
from core.epub.models import GuideReference, ManifestItem, Metadata, PackageDocument, Spine
from core.epub.xmltree import XmlNode, XmlSyntaxError, parse_xml

EPUB_MIMETYPE = "application/epub+zip"
OEBPS_MEDIA_TYPE = "application/oebps-package+xml"
CONTAINER_PATH = "META-INF/container.xml"
DEFAULT_VERSION = "2.0"

_UUID_RE = re.compile(r"uuid", re.IGNORECASE)


def resolve_package(archive: EpubArchive) -> PackageDocument:
    """按顺序解析整个包，任一步失败都会中止并抛出对应异常。"""
    _check_mimetype(archive)
    rootfile = _find_rootfile(archive)
    logger.debug("rootfile  {}", rootfile)

    try:
        root = parse_xml(archive.read(rootfile))
    except XmlSyntaxError as e:
        raise XmlParseError(f"Parsing package XML failed: {e}", e.line, e.column) from e

    return _parse_opf(root, rootfile)


# ── 内部工具函数 ────────────────────────────────────────────────────────────


def _check_mimetype(archive: EpubArchive) -> None:
    name = archive.find("mimetype")
    if name is None:
        raise MimetypeError("No mimetype file in archive")
    # 非 UTF-8 字节按替换字符处理，交给下面的比较报错
    text = archive.read_text(name, errors="replace").strip().lower()
    if text != EPUB_MIMETYPE:
        raise MimetypeError("Unsupported mime type")
    logger.debug("mimetype ok")


def _find_rootfile(archive: EpubArchive) -> str:
    name = archive.find(CONTAINER_PATH)
    if name is None:
        raise ContainerError("No container file in archive")

    try:
        container = parse_xml(archive.read(name))
    except XmlSyntaxError as e:
        raise XmlParseError(f"Parsing container XML failed: {e}", e.line, e.column) from e

    rootfiles = container.first("rootfiles")
    candidates = rootfiles.all("rootfile") if rootfiles is not None else []
    if not candidates:
        raise ContainerError("No rootfiles found")

    full_path = None
    for rootfile in candidates:
        media_type = (rootfile.attr("media-type") or "").lower()
        if media_type == OEBPS_MEDIA_TYPE and rootfile.attr("full-path"):
            full_path = rootfile.attr("full-path")
            break
    if full_path is None:
        raise RootfileError("Rootfile not found from archive")

    # container 中的路径与实际条目名可能大小写不一致
    actual = archive.find(full_path)
    if actual is None:
        raise RootfileError(f"Rootfile {full_path} not found in archive")
    return actual


def _parse_opf(root: XmlNode, rootfile: str) -> PackageDocument:
    base_dir = parent_dir(rootfile)
    metadata = Metadata()
    manifest: dict[str, ManifestItem] = {}
    guide: list[GuideReference] = []
    spine_node: XmlNode | None = None

    for child in root.elements:
        key = child.tag.lower()
        if key == "metadata":
            metadata = _parse_metadata(child)
        elif key == "manifest":
            manifest = _parse_manifest(child, base_dir)
        elif key == "spine":
            # spine 依赖 manifest，放到最后解析
            spine_node = child
        elif key == "guide":
            guide = _parse_guide(child, base_dir)
        else:
            logger.debug("ignored package element <{}>", child.tag)

    spine = _parse_spine(spine_node, manifest) if spine_node is not None else Spine()

    logger.debug(
        "package  version={} manifest={} spine={} guide={}",
        root.attr("version") or DEFAULT_VERSION, len(manifest), len(spine.contents), len(guide),
    )
    return PackageDocument(
        rootfile=rootfile,
        version=root.attr("version") or DEFAULT_VERSION,
        metadata=metadata,
        manifest=manifest,
        guide=guide,
        spine=spine,
    )


def _parse_metadata(node: XmlNode) -> Metadata:
    values: dict = {}
    extra: dict[str, str] = {}

    for tag, elements in node.children.items():
        key = tag.lower()
        if key in ("publisher", "title", "description", "date"):
            values[key] = elements[0].text.strip()
        elif key == "language":
            values["language"] = elements[0].text.strip().lower()
        elif key == "subject":
            subjects = [el.text.strip() for el in elements]
            values["subjects"] = subjects
            values["subject"] = subjects[0] if subjects else ""
        elif key == "creator":
            creator = elements[0].text.strip()
            values["creator"] = creator
            values["creator_file_as"] = (elements[0].attr("file-as") or creator).strip()
        elif key == "identifier":
            for el in elements:
                _parse_identifier(el, values, extra)
        elif key == "source":
            values["source"] = elements[0].text.strip() if elements else ""

    for meta in node.all("meta"):
        name = meta.attr("name")
        prop = meta.attr("property")
        if name:
            extra[name] = meta.attr("content") or ""
        if prop and meta.text.strip():
            extra[prop] = meta.text.strip()

    return Metadata(**values, extra=extra)


def _parse_identifier(el: XmlNode, values: dict, extra: dict[str, str]) -> None:
    scheme = el.attr("scheme")
    el_id = el.attr("id")
    contents = el.text.strip()
    if scheme:
        extra[scheme] = contents
    elif el_id and _UUID_RE.search(el_id):
        values["uuid"] = contents.replace("urn:uuid:", "").upper().strip()


def _resolve_href(href: str, base_dir: str) -> str:
    """OPF 中的 href 相对于 OPF 所在目录，转换为相对于归档根目录。"""
    if not href:
        return href
    if base_dir and href.startswith(base_dir + "/"):
        return join_path("", href)
    return join_path(base_dir, href)


def _parse_manifest(node: XmlNode, base_dir: str) -> dict[str, ManifestItem]:
    manifest: dict[str, ManifestItem] = {}
    for item in node.all("item"):
        item_id = item.attr("id")
        if not item_id:
            continue
        attributes = {k: v for k, v in item.attrs.items() if k not in ("id", "href", "media-type")}
        manifest[item_id] = ManifestItem(
            id=item_id,
            href=_resolve_href(item.attr("href", ""), base_dir),
            media_type=item.attr("media-type", ""),
            attributes=attributes,
        )
    return manifest


def _parse_guide(node: XmlNode, base_dir: str) -> list[GuideReference]:
    guide: list[GuideReference] = []
    for ref in node.all("reference"):
        guide.append(GuideReference(
            type=ref.attr("type", ""),
            title=ref.attr("title", ""),
            href=_resolve_href(ref.attr("href", ""), base_dir),
            attributes={k: v for k, v in ref.attrs.items() if k not in ("type", "title", "href")},
        ))
    return guide


def _parse_spine(node: XmlNode, manifest: dict[str, ManifestItem]) -> Spine:
    toc_id = node.attr("toc")
    toc = manifest.get(toc_id) if toc_id else None

    contents: list[ManifestItem] = []
    for itemref in node.all("itemref"):
        idref = itemref.attr("idref")
        if not idref:
            continue
        item = manifest.get(idref)
        if item is None:
            logger.warning("spine itemref {} not in manifest, skipped", idref)
            continue
        contents.append(item)
    return Spine(toc=toc, contents=contents)
