"""测试用 EPUB：在临时目录中用 zipfile 现场打包。"""

from __future__ import annotations

import zipfile
from pathlib import Path

import pytest

CONTAINER_XML = """<?xml version="1.0"?>
<container version="1.0" xmlns="urn:oasis:names:tc:opendocument:xmlns:container">
  <rootfiles>
    <rootfile full-path="OEBPS/content.opf" media-type="application/oebps-package+xml"/>
  </rootfiles>
</container>
"""

CONTENT_OPF = """<?xml version="1.0" encoding="UTF-8"?>
<package xmlns="http://www.idpf.org/2007/opf" version="2.0" unique-identifier="uuid_id">
  <metadata xmlns:dc="http://purl.org/dc/elements/1.1/" xmlns:opf="http://www.idpf.org/2007/opf">
    <dc:title>Alice's Adventures in Wonderland</dc:title>
    <dc:creator opf:file-as="Carroll, Lewis" opf:role="aut">Lewis Carroll</dc:creator>
    <dc:creator>John Tenniel</dc:creator>
    <dc:language>EN-GB</dc:language>
    <dc:subject>Fantasy</dc:subject>
    <dc:subject>Children</dc:subject>
    <dc:identifier id="uuid_id">urn:uuid:1b2c3d4e-aaaa-bbbb-cccc-123456789abc</dc:identifier>
    <dc:identifier opf:scheme="ISBN">9780000000001</dc:identifier>
    <dc:publisher> Macmillan </dc:publisher>
    <dc:date>1865</dc:date>
    <dc:description>A girl falls down a rabbit hole.</dc:description>
    <dc:source>Project Gutenberg</dc:source>
    <meta name="cover" content="cover-img"/>
    <meta property="dcterms:modified">2020-01-01T00:00:00Z</meta>
  </metadata>
  <manifest>
    <item id="ncx" href="toc.ncx" media-type="application/x-dtbncx+xml"/>
    <item id="ch1" href="ch1.xhtml" media-type="application/xhtml+xml"/>
    <item id="ch2" href="OEBPS/ch2.xhtml" media-type="application/xhtml+xml"/>
    <item id="css" href="style.css" media-type="text/css"/>
    <item id="img1" href="images/pic.jpg" media-type="image/jpeg"/>
    <item id="cover-img" href="images/cover.png" media-type="image/png" properties="cover-image"/>
    <item id="svg1" href="drawing.svg" media-type="image/svg+xml"/>
  </manifest>
  <spine toc="ncx">
    <itemref idref="ch1"/>
    <itemref idref="ghost"/>
    <itemref idref="ch2"/>
    <itemref idref="svg1" linear="no"/>
  </spine>
  <guide>
    <reference type="cover" title="Cover" href="ch1.xhtml"/>
  </guide>
</package>
"""

TOC_NCX = """<?xml version="1.0" encoding="UTF-8"?>
<ncx xmlns="http://www.daisy.org/z3986/2005/ncx/" version="2005-1">
  <head/>
  <docTitle><text>Alice</text></docTitle>
  <navMap>
    <navPoint id="np1" playOrder="1">
      <navLabel><text> Down the Rabbit-Hole </text></navLabel>
      <content src="ch1.xhtml"/>
      <navPoint id="np1a" playOrder="2">
        <navLabel><text>The Hall</text></navLabel>
        <content src="ch1.xhtml#hall"/>
      </navPoint>
    </navPoint>
    <navPoint id="np2" playOrder="abc">
      <navLabel><text>The Pool of Tears</text></navLabel>
      <content src="ch2.xhtml"/>
    </navPoint>
    <navPoint id="np3">
      <navLabel><text></text></navLabel>
      <content src="extra.xhtml"/>
    </navPoint>
    <navPoint id="np4" playOrder="5">
      <navLabel><text>Part Two</text></navLabel>
      <navPoint id="np4a" playOrder="6">
        <navLabel><text>Appendix</text></navLabel>
        <content src="ch2.xhtml"/>
      </navPoint>
    </navPoint>
  </navMap>
</ncx>
"""

CH1_XHTML = """<?xml version="1.0" encoding="UTF-8"?>
<html xmlns="http://www.w3.org/1999/xhtml">
<head><title>Chapter 1</title>
<style type="text/css">p { color: red; }</style>
<script type="text/javascript">alert("head");</script>
</head>
<body class="chapter">
<h1 onclick="alert('x')">Down the Rabbit-Hole</h1>
<script>
  document.write("evil");
</script>
<p ONMOUSEOVER="track()">Alice was beginning to get very tired.</p>
<img src="images/pic.jpg" alt="Rabbit"/>
<img src="missing.png" alt="Missing"/>
<a href="ch2.xhtml#top">Next</a>
<a href="http://example.com/">Elsewhere</a>
<a href="style.css">Styles</a>
</body>
</html>
"""

CH2_XHTML = "<div>Plain <b>fragment</b></div>\n"

DRAWING_SVG = '<svg xmlns="http://www.w3.org/2000/svg"><circle r="4"/></svg>'

JPEG_BYTES = b"\xff\xd8\xff\xe0fake-jpeg"


def default_files() -> dict[str, str | bytes]:
    return {
        "mimetype": "application/epub+zip",
        "META-INF/container.xml": CONTAINER_XML,
        "OEBPS/content.opf": CONTENT_OPF,
        "OEBPS/toc.ncx": TOC_NCX,
        "OEBPS/ch1.xhtml": CH1_XHTML,
        "OEBPS/ch2.xhtml": CH2_XHTML,
        "OEBPS/style.css": "p { margin: 0; }",
        "OEBPS/images/pic.jpg": JPEG_BYTES,
        "OEBPS/images/cover.png": b"\x89PNG fake",
        "OEBPS/drawing.svg": DRAWING_SVG,
    }


def write_epub(path: Path, files: dict[str, str | bytes | None]) -> Path:
    """按顺序写入条目；值为 None 的条目跳过。"""
    with zipfile.ZipFile(path, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for name, content in files.items():
            if content is None:
                continue
            zf.writestr(name, content)
    return path


@pytest.fixture
def build_epub(tmp_path):
    """工厂：在默认文件基础上覆盖或删除条目（值为 None 表示删除）。"""
    counter = [0]

    def _build(overrides: dict[str, str | bytes | None] | None = None, replace: bool = False) -> Path:
        files = {} if replace else default_files()
        files.update(overrides or {})
        counter[0] += 1
        return write_epub(tmp_path / f"book{counter[0]}.epub", files)

    return _build


@pytest.fixture
def epub_path(build_epub) -> Path:
    return build_epub()


@pytest.fixture
def book(epub_path):
    from core.epub.book import EPub

    epub = EPub(epub_path)
    epub.parse()
    return epub
