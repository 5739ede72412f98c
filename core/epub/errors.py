"""EPUB 解析与渲染过程中抛出的异常。"""

from __future__ import annotations


class EpubError(RuntimeError):
    """所有 EPUB 相关错误的基类。"""


class ArchiveError(EpubError):
    """ZIP 归档无法打开，或缺少必须的条目。"""


class MimetypeError(ArchiveError):
    """缺少 mimetype 条目，或其内容不是 application/epub+zip。"""


class ContainerError(ArchiveError):
    """缺少 META-INF/container.xml，或其中没有 rootfile 列表。"""


class RootfileError(ArchiveError):
    """没有合格的 rootfile 声明，或声明的路径不在归档内。"""


class EntryNotFoundError(ArchiveError):
    """按名称读取的 ZIP 条目不存在。"""


class ItemNotFoundError(ArchiveError):
    """manifest 中没有该 id。"""

    def __init__(self, item_id: str) -> None:
        super().__init__("File not found")
        self.item_id = item_id


class XmlParseError(EpubError):
    """XML 语法错误，附带行列号。"""

    def __init__(self, message: str, line: int | None = None, column: int | None = None) -> None:
        super().__init__(message)
        self.line = line
        self.column = column


class TocParseError(XmlParseError):
    """导航文档（NCX）解析失败，与 OPF 失败区分开。"""


class MediaTypeError(EpubError):
    """资源的 media-type 与请求方式不符。"""

    def __init__(self, message: str, media_type: str) -> None:
        super().__init__(message)
        self.media_type = media_type
