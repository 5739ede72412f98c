"""FastAPI Web 应用入口。"""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.web.routers.book import image_router, link_router, router as book_router
from core.epub.book import EPub


def create_app(book: EPub) -> FastAPI:
    """为一本已解析的书创建 Web 应用，图片与链接路由挂在书的 URL 前缀下。"""
    app = FastAPI(title="epubview", version="0.1.0")
    app.state.book = book

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(book_router)
    app.include_router(image_router, prefix=book.image_root.rstrip("/"))
    app.include_router(link_router, prefix=book.link_root.rstrip("/"))
    return app
