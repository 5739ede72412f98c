"""epubview CLI 入口。

命令：
  ev <epub>                  显示元数据与目录（简写）
  ev info <epub>             显示元数据与目录
  ev chapter <epub> <id>     输出渲染后的章节 HTML（--raw 原文，--text 纯文本）
  ev file <epub> <id>        导出 manifest 中的资源
  ev serve <epub>            启动 Web 阅读服务
"""

from __future__ import annotations

import sys
from pathlib import Path, PurePosixPath
from typing import Optional

import typer

# 若第一个参数看起来是 epub 文件（而非子命令），自动补全 "info"
# 使得 `ev book.epub` 等价于 `ev info book.epub`
_SUBCOMMANDS = {"info", "chapter", "file", "serve", "--help", "-h"}
if len(sys.argv) > 1 and sys.argv[1] not in _SUBCOMMANDS and sys.argv[1].endswith(".epub"):
    sys.argv.insert(1, "info")
from bs4 import BeautifulSoup
from rich.console import Console
from rich.table import Table

from loguru import logger

from core.config import ReaderConfig
from core.epub.book import EPub
from core.epub.errors import EpubError

app = typer.Typer(
    name="ev",
    help="epubview: EPUB 目录解析与章节渲染工具",
    add_completion=False,
)
console = Console()

LOG_FORMAT = "<green>{time:HH:mm:ss}</green> | <level>{level:<7}</level> | {message}"

# 移除 loguru 默认的 stderr handler，改为通过 Rich Console 输出
logger.remove(0)
_log_handler = logger.add(
    lambda msg: console.log(msg, end=""),
    format=LOG_FORMAT,
    level="WARNING",
    colorize=True,
)

_EPUB_ARG = typer.Argument(..., help="EPUB 文件路径", exists=True, dir_okay=False)
_IMAGE_ROOT_OPT = typer.Option("/images/", "--image-root", help="图片 URL 前缀", envvar="EV_IMAGE_ROOT")
_LINK_ROOT_OPT = typer.Option("/links/", "--link-root", help="链接 URL 前缀", envvar="EV_LINK_ROOT")
_VERBOSE_OPT = typer.Option(False, "--verbose", "-v", help="输出调试日志")


@app.command()
def info(
    epub: Path = _EPUB_ARG,
    verbose: bool = _VERBOSE_OPT,
) -> None:
    """显示元数据与目录。"""
    book = _load_book(epub, ReaderConfig(), verbose)
    meta = book.metadata

    table = Table(title=meta.title or epub.name, show_header=True)
    table.add_column("字段", style="cyan")
    table.add_column("值", style="white")
    for key in ("creator", "creator_file_as", "title", "language", "subject",
                "date", "description", "publisher", "source", "uuid"):
        value = getattr(meta, key)
        if value:
            table.add_row(key, value)
    for key, value in meta.extra.items():
        if value:
            table.add_row(key, value)
    table.add_row("version", book.version)
    table.add_row("chapters", str(len(book.flow)))
    if book.has_drm():
        table.add_row("drm", "[red]encrypted[/red]")
    console.print(table)

    console.print("\n[bold]Table of Contents[/bold]")
    if not book.toc:
        console.print("  [dim]（无目录）[/dim]")
    for entry in book.toc:
        indent = "  " * (entry.level + 1)
        console.print(f"{indent}{entry.title}  [dim]{entry.id}[/dim]", highlight=False)


@app.command()
def chapter(
    epub: Path = _EPUB_ARG,
    item_id: str = typer.Argument(..., help="manifest 中的章节 id"),
    raw: bool = typer.Option(False, "--raw", help="输出未处理的原始 XHTML"),
    text: bool = typer.Option(False, "--text", help="输出纯文本"),
    image_root: str = _IMAGE_ROOT_OPT,
    link_root: str = _LINK_ROOT_OPT,
    verbose: bool = _VERBOSE_OPT,
) -> None:
    """输出单个章节。"""
    config = ReaderConfig(image_root=image_root, link_root=link_root)
    book = _load_book(epub, config, verbose)
    try:
        content = book.get_chapter_raw(item_id) if raw else book.get_chapter(item_id)
    except EpubError as e:
        console.print(f"[red]读取章节失败：{e}[/red]")
        raise typer.Exit(1)

    if text:
        content = _to_plain_text(content)
    # 直接写 stdout，避免 Rich 解释方括号标记
    typer.echo(content)


@app.command("file")
def extract_file(
    epub: Path = _EPUB_ARG,
    item_id: str = typer.Argument(..., help="manifest 中的资源 id"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="输出路径（默认：资源文件名）"),
    verbose: bool = _VERBOSE_OPT,
) -> None:
    """导出 manifest 中的资源文件。"""
    book = _load_book(epub, ReaderConfig(), verbose)
    try:
        resource = book.get_file(item_id)
    except EpubError as e:
        console.print(f"[red]读取资源失败：{e}[/red]")
        raise typer.Exit(1)

    if output is None:
        output = Path(PurePosixPath(book.manifest[item_id].href).name)
    output.write_bytes(resource.data)
    console.print(f"[green]✓[/green] {item_id} ({resource.media_type}) → {output}")


@app.command()
def serve(
    epub: Path = _EPUB_ARG,
    host: str = typer.Option("127.0.0.1", "--host", help="监听地址"),
    port: int = typer.Option(8080, "--port", "-p", help="监听端口"),
    image_root: str = _IMAGE_ROOT_OPT,
    link_root: str = _LINK_ROOT_OPT,
    verbose: bool = _VERBOSE_OPT,
) -> None:
    """启动 Web 阅读服务。"""
    import uvicorn

    from app.web.app import create_app

    config = ReaderConfig(image_root=image_root, link_root=link_root, host=host, port=port)
    book = _load_book(epub, config, verbose)
    console.print(f"\n[bold]epubview[/bold]  {book.metadata.title or epub.name}")
    console.print(f"  地址：http://{config.host}:{config.port}/\n")
    uvicorn.run(create_app(book), host=config.host, port=config.port)


def _load_book(epub: Path, config: ReaderConfig, verbose: bool) -> EPub:
    if verbose:
        _set_log_level("DEBUG")
    book = EPub(
        epub,
        image_root=config.effective_image_root(),
        link_root=config.effective_link_root(),
    )
    try:
        book.parse()
    except EpubError as e:
        console.print(f"[red]解析失败：{e}[/red]")
        raise typer.Exit(1)
    return book


def _set_log_level(level: str) -> None:
    global _log_handler
    logger.remove(_log_handler)
    _log_handler = logger.add(
        lambda msg: console.log(msg, end=""),
        format=LOG_FORMAT,
        level=level,
        colorize=True,
    )


def _to_plain_text(content: str) -> str:
    """按段落提取纯文本。"""
    soup = BeautifulSoup(content, "lxml")
    paragraphs = []
    for p in soup.find_all(["p", "h1", "h2", "h3", "h4", "h5", "h6", "li"]):
        line = p.get_text(strip=True)
        if line:
            paragraphs.append(line)
    if not paragraphs:
        return soup.get_text(separator="\n", strip=True)
    return "\n\n".join(paragraphs)
