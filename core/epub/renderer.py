"""章节渲染：把原始 XHTML 转换为可直接嵌入网页的 HTML。

处理顺序固定，后面的替换依赖前面已经统一了换行并去掉了危险内容：
  1. 换行替换为占位字符，使正文匹配可以跨行
  2. 只保留 <body> 内部内容
  3. 删除 <script> 块，没有闭合的 <script> 连同其后内容一起删除
  4. 删除 <style> 块，规则同上
  5. on* 事件属性改名为 skip-on*，保留属性值
  6. src 改写为 {image_root}{id}/{path}，找不到对应资源时清空
  7. href 改写为 {link_root}{id}/{path}[#fragment]，找不到时原样保留
  8. 还原换行
"""

from __future__ import annotations

import re

from loguru import logger

from core.epub.archive import join_path
from core.epub.models import ManifestItem

_SENTINEL = "\x00"

_LINEBREAK_RE = re.compile(r"\r\n|\r|\n")
_BODY_RE = re.compile(r"<body[^>]*?>(.*)</body[^>]*?>", re.IGNORECASE | re.DOTALL)
_SCRIPT_RE = re.compile(
    r"<script\b[^>]*?/>|<script\b[^>]*?>.*?</script[^>]*?>", re.IGNORECASE | re.DOTALL
)
_STYLE_RE = re.compile(
    r"<style\b[^>]*?/>|<style\b[^>]*?>.*?</style[^>]*?>", re.IGNORECASE | re.DOTALL
)
# 残缺的 <script>/<style> 会把后面的内容都当作脚本，直接截断
_UNCLOSED_RE = re.compile(r"<(?:script|style)\b.*\Z", re.IGNORECASE | re.DOTALL)
_STRAY_CLOSE_RE = re.compile(r"</(?:script|style)\b[^>]*>?", re.IGNORECASE)
# 占位字符也视为空白；属性之间也可能只隔着 / 或引号
_EVENT_RE = re.compile(r"([\s/\"'\x00])(on\w+)(?=[\s\x00]*=)", re.IGNORECASE)
_SRC_RE = re.compile(
    r"([\s\x00]src[\s\x00]*=[\s\x00]*[\"']?)([^\"'\s\x00>]*?)([\"'\s\x00>])", re.IGNORECASE
)
_HREF_RE = re.compile(
    r"([\s\x00]href[\s\x00]*=[\s\x00]*[\"']?)([^\"'\s\x00>]*?)([\"'\s\x00>])", re.IGNORECASE
)


def render_chapter(
    text: str,
    manifest: dict[str, ManifestItem],
    base_dir: str,
    image_root: str,
    link_root: str,
) -> str:
    s = _LINEBREAK_RE.sub(_SENTINEL, text)

    body = _BODY_RE.search(s)
    if body:
        s = body.group(1).strip()

    s = _strip_blocks(s)
    s = _EVENT_RE.sub(r"\1skip-\2", s)

    s = _rewrite_sources(s, manifest, base_dir, image_root)
    s = _rewrite_links(s, manifest, base_dir, link_root)

    return s.replace(_SENTINEL, "\n").strip()


def _strip_blocks(s: str) -> str:
    # 删掉一段之后，前后的碎片可能拼成新的标签，所以反复处理直到不再变化
    while True:
        stripped = _STYLE_RE.sub("", _SCRIPT_RE.sub("", s))
        if stripped == s:
            stripped = _UNCLOSED_RE.sub("", _STRAY_CLOSE_RE.sub("", s))
            if stripped == s:
                return s
        s = stripped


def _rewrite_sources(s: str, manifest: dict[str, ManifestItem], base_dir: str, image_root: str) -> str:
    by_href: dict[str, ManifestItem] = {}
    for item in manifest.values():
        by_href.setdefault(item.href, item)

    def replace(m: re.Match) -> str:
        prefix, value, suffix = m.groups()
        path = join_path(base_dir, value)
        item = by_href.get(path) if path else None
        if item is None:
            # 图片引用失效时直接去掉，避免出现坏图
            logger.debug("dropped src {!r}", value)
            return prefix + suffix
        return f"{prefix}{image_root}{item.id}/{path}{suffix}"

    return _SRC_RE.sub(replace, s)


def _rewrite_links(s: str, manifest: dict[str, ManifestItem], base_dir: str, link_root: str) -> str:
    by_href: dict[str, ManifestItem] = {}
    for item in manifest.values():
        by_href.setdefault(item.href.split("#")[0], item)

    def replace(m: re.Match) -> str:
        prefix, value, suffix = m.groups()
        path, sep, fragment = value.partition("#")
        link = join_path(base_dir, path)
        item = by_href.get(link) if link else None
        if item is None:
            return m.group(0)
        if sep:
            link += "#" + fragment
        return f"{prefix}{link_root}{item.id}/{link}{suffix}"

    return _HREF_RE.sub(replace, s)
