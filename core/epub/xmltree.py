"""XML 树适配：把 lxml 元素转换为按本地标签名索引的通用节点。

命名空间一律去掉，元素和属性都按本地名访问（opf:scheme → scheme）。
"""

from __future__ import annotations

from dataclasses import dataclass, field

from lxml import etree

from core.epub.errors import XmlParseError


class XmlSyntaxError(XmlParseError):
    """XML 语法错误（未附加阶段前缀的原始诊断）。"""


@dataclass
class XmlNode:
    tag: str                                   # 本地标签名
    attrs: dict[str, str] = field(default_factory=dict)
    text: str = ""                             # 全部文本内容（未 trim）
    children: dict[str, list[XmlNode]] = field(default_factory=dict)
    elements: list[XmlNode] = field(default_factory=list, repr=False)  # 文档顺序

    def first(self, tag: str) -> XmlNode | None:
        nodes = self.children.get(tag)
        return nodes[0] if nodes else None

    def all(self, tag: str) -> list[XmlNode]:
        return list(self.children.get(tag, []))

    def attr(self, name: str, default: str | None = None) -> str | None:
        return self.attrs.get(name, default)


_PARSER_OPTIONS = dict(
    resolve_entities=False,
    no_network=True,
    remove_comments=True,
    remove_pis=True,
)


def parse_xml(data: bytes | str) -> XmlNode:
    """解析 XML 文本，返回根节点；语法错误时抛出 XmlSyntaxError。"""
    if isinstance(data, str):
        # lxml 不接受带 encoding 声明的 str
        data = data.encode("utf-8")
    parser = etree.XMLParser(**_PARSER_OPTIONS)
    try:
        root = etree.fromstring(data, parser)
    except etree.XMLSyntaxError as e:
        line, column = e.position if e.position else (e.lineno, None)
        raise XmlSyntaxError(
            f"{e.msg}\nLine: {line}\nColumn: {column}", line=line, column=column
        ) from e
    return _convert(root)


def _convert(el: etree._Element) -> XmlNode:
    node = XmlNode(
        tag=etree.QName(el).localname,
        attrs={etree.QName(k).localname: v for k, v in el.attrib.items()},
        text="".join(el.itertext()),
    )
    for child in el:
        if not isinstance(child.tag, str):
            continue
        sub = _convert(child)
        node.children.setdefault(sub.tag, []).append(sub)
        node.elements.append(sub)
    return node
