"""书籍内容 API 路由：目录、元数据、章节、图片。"""

from __future__ import annotations

import html
from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import HTMLResponse, Response

from core.config import CHAPTER_MEDIA_TYPES
from core.epub.book import EPub
from core.epub.errors import EntryNotFoundError, EpubError, ItemNotFoundError, MediaTypeError

router = APIRouter(tags=["book"])
# 以下两个路由的前缀由 create_app 按书的 image_root / link_root 决定
image_router = APIRouter(tags=["images"])
link_router = APIRouter(tags=["links"])


def get_book(request: Request) -> EPub:
    return request.app.state.book


@router.get("/", response_class=HTMLResponse)
async def index(book: EPub = Depends(get_book)) -> str:
    """目录页：按层级缩进列出所有条目。"""
    title = html.escape(book.metadata.title or "Untitled")
    items = []
    for entry in book.toc:
        href = html.escape(f"{book.link_root}{entry.id}/{entry.href}")
        items.append(
            f'<li style="margin-left:{entry.level * 1.5}em">'
            f'<a href="{href}">{html.escape(entry.title)}</a></li>'
        )
    return (
        f"<!DOCTYPE html><html><head><meta charset=\"utf-8\"><title>{title}</title></head>"
        f"<body><h1>{title}</h1><ul>{''.join(items)}</ul></body></html>"
    )


@router.get("/api/contents")
async def contents(book: EPub = Depends(get_book)) -> dict:
    return {
        "toc": [asdict(entry) for entry in book.toc],
        "flow": [asdict(item) for item in book.flow],
    }


@router.get("/api/metadata")
async def metadata(book: EPub = Depends(get_book)) -> dict:
    return {
        "version": book.version,
        "metadata": asdict(book.metadata),
        "guide": [asdict(ref) for ref in book.guide],
        "drm": book.has_drm(),
    }


@image_router.get("/{item_id}")
@image_router.get("/{item_id}/{path:path}")
async def image(item_id: str, path: str = "", book: EPub = Depends(get_book)) -> Response:
    try:
        resource = await book.get_image_async(item_id)
    except EpubError as e:
        raise _http_error(e) from e
    return Response(content=resource.data, media_type=resource.media_type)


@link_router.get("/{item_id}")
@link_router.get("/{item_id}/{path:path}")
async def link(item_id: str, path: str = "", book: EPub = Depends(get_book)) -> Response:
    """章节返回渲染后的 HTML，其他资源（CSS 等）原样返回。"""
    try:
        item = book.manifest.get(item_id)
        if item is not None and item.media_type in CHAPTER_MEDIA_TYPES:
            return HTMLResponse(await book.get_chapter_async(item_id))
        resource = await book.get_file_async(item_id)
    except EpubError as e:
        raise _http_error(e) from e
    return Response(content=resource.data, media_type=resource.media_type)


def _http_error(e: EpubError) -> HTTPException:
    if isinstance(e, (ItemNotFoundError, EntryNotFoundError)):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, MediaTypeError):
        return HTTPException(status_code=415, detail=str(e))
    return HTTPException(status_code=500, detail=str(e))
