"""Shared fixtures: in-memory EPUB/PDF builders and environment isolation."""

from __future__ import annotations

import io
import zipfile
from typing import Callable, Dict, Iterable, Optional, Sequence, Tuple

import pymupdf
import pytest

from catalog_tools.config_manager import loader as cfg_loader

ENRICHMENT_ENV_VARS = (
    "ENABLE_LOC_AUTHORITY_ENRICHMENT",
    "LOC_AUTHORITY_ENRICHMENT_MODE",
    "LOC_AUTHORITY_MODE",
    "LOC_AUTHORITY_MCP_URL",
    "LOC_DIRECT_SEARCH_URL",
    "LOC_AUTHORITY_TIMEOUT_MS",
    "LOC_AUTHORITY_MAX_RESULTS",
    "ENABLE_OPEN_LIBRARY_ENRICHMENT",
    "OPEN_LIBRARY_ENRICHMENT_MODE",
    "OPEN_LIBRARY_MCP_URL",
    "OPEN_LIBRARY_TIMEOUT_MS",
    "OPEN_LIBRARY_MAX_RESULTS",
    "ENABLE_HARDCOVER_ENRICHMENT",
    "HARDCOVER_ENRICHMENT_MODE",
    "HARDCOVER_API_URL",
    "HARDCOVER_API_TOKEN",
    "HARDCOVER_TIMEOUT_MS",
    "HARDCOVER_MAX_RESULTS",
    "CATALOG_PARSE_TIMEOUT_SECONDS",
    "CATALOG_MAX_TEXT_LENGTH",
    "CATALOG_CONFIG_FILE",
    "CATALOG_ENV_FILE",
)


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch):
    for name in ENRICHMENT_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(cfg_loader, "_ACTIVE_SETTINGS", None)
    yield


# ---------------------------------------------------------------------------
# EPUB builder
# ---------------------------------------------------------------------------

CONTAINER_XML = """<?xml version="1.0" encoding="UTF-8"?>
<container version="1.0" xmlns="urn:oasis:names:tc:opendocument:xmlns:container">
  <rootfiles>
    <rootfile full-path="{opf_path}" media-type="application/oebps-package+xml"/>
  </rootfiles>
</container>
"""

CHAPTER_XHTML = """<?xml version="1.0" encoding="UTF-8"?>
<html xmlns="http://www.w3.org/1999/xhtml">
  <head><title>{name}</title></head>
  <body>{body}</body>
</html>
"""

NAV_XHTML = """<?xml version="1.0" encoding="UTF-8"?>
<html xmlns="http://www.w3.org/1999/xhtml" xmlns:epub="http://www.idpf.org/2007/ops">
  <head><title>Navigation</title></head>
  <body>{body}</body>
</html>
"""

NCX_XML = """<?xml version="1.0" encoding="UTF-8"?>
<ncx xmlns="http://www.daisy.org/z3986/2005/ncx/" version="2005-1">
  {body}
</ncx>
"""

OPF_XML = """<?xml version="1.0" encoding="UTF-8"?>
<package xmlns="http://www.idpf.org/2007/opf" version="{version}" unique-identifier="bookid">
  <metadata xmlns:dc="http://purl.org/dc/elements/1.1/" xmlns:opf="http://www.idpf.org/2007/opf">
    {title}
    {creator}
    {metadata_extra}
  </metadata>
  <manifest>
    {manifest}
  </manifest>
  <spine{spine_attrs}>
    {spine}
  </spine>
</package>
"""


def build_epub(
    *,
    title: Optional[str] = "Sample Book",
    creator: Optional[str] = "Jane Doe",
    metadata_extra: str = "",
    chapters: Sequence[Tuple[str, str]] = (("chapter1.xhtml", "<p>Chapter one text.</p>"),),
    nav_body: Optional[str] = None,
    ncx_body: Optional[str] = None,
    version: str = "3.0",
    cover: Optional[bytes] = None,
    cover_via_meta: bool = False,
    omit: Iterable[str] = (),
    opf_path: str = "OEBPS/content.opf",
) -> bytes:
    """Return the bytes of a small EPUB package assembled in memory."""

    base_dir = opf_path.rsplit("/", 1)[0] + "/" if "/" in opf_path else ""
    files: Dict[str, bytes] = {
        "mimetype": b"application/epub+zip",
        "META-INF/container.xml": CONTAINER_XML.format(opf_path=opf_path).encode("utf-8"),
    }
    manifest = []
    spine = []
    for index, (name, body) in enumerate(chapters, start=1):
        item_id = f"chap{index}"
        manifest.append(f'<item id="{item_id}" href="{name}" media-type="application/xhtml+xml"/>')
        spine.append(f'<itemref idref="{item_id}"/>')
        files[base_dir + name] = CHAPTER_XHTML.format(name=name, body=body).encode("utf-8")

    if nav_body is not None:
        manifest.append(
            '<item id="nav" href="nav.xhtml" media-type="application/xhtml+xml" properties="nav"/>'
        )
        files[base_dir + "nav.xhtml"] = NAV_XHTML.format(body=nav_body).encode("utf-8")
    spine_attrs = ""
    if ncx_body is not None:
        manifest.append('<item id="ncx" href="toc.ncx" media-type="application/x-dtbncx+xml"/>')
        files[base_dir + "toc.ncx"] = NCX_XML.format(body=ncx_body).encode("utf-8")
        spine_attrs = ' toc="ncx"'

    if cover is not None:
        properties = "" if cover_via_meta else ' properties="cover-image"'
        manifest.append(f'<item id="cover-img" href="images/cover.png" media-type="image/png"{properties}/>')
        files[base_dir + "images/cover.png"] = cover
        if cover_via_meta:
            metadata_extra += '<meta name="cover" content="cover-img"/>'

    opf = OPF_XML.format(
        version=version,
        title=f"<dc:title>{title}</dc:title>" if title is not None else "",
        creator=f"<dc:creator>{creator}</dc:creator>" if creator is not None else "",
        metadata_extra=metadata_extra,
        manifest="\n    ".join(manifest),
        spine_attrs=spine_attrs,
        spine="\n    ".join(spine),
    )
    files[opf_path] = opf.encode("utf-8")

    skipped = set(omit)
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        for name, payload in files.items():
            if name in skipped:
                continue
            compression = zipfile.ZIP_STORED if name == "mimetype" else zipfile.ZIP_DEFLATED
            archive.writestr(name, payload, compress_type=compression)
    return buffer.getvalue()


def build_zip(entries: Dict[str, bytes]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        for name, payload in entries.items():
            archive.writestr(name, payload)
    return buffer.getvalue()


# ---------------------------------------------------------------------------
# PDF builder
# ---------------------------------------------------------------------------


def build_pdf(
    pages: Sequence[str] = ("Hello from a PDF page.",),
    *,
    metadata: Optional[Dict[str, str]] = None,
    password: Optional[str] = None,
) -> bytes:
    """Return PDF bytes with one page per entry in ``pages``."""

    document = pymupdf.open()
    try:
        for text in pages:
            page = document.new_page()
            if text:
                page.insert_text((72, 72), text)
        if metadata:
            document.set_metadata(metadata)
        if password:
            return document.tobytes(
                encryption=pymupdf.PDF_ENCRYPT_AES_256,
                owner_pw=password,
                user_pw=password,
            )
        return document.tobytes()
    finally:
        document.close()


@pytest.fixture
def epub_factory() -> Callable[..., bytes]:
    return build_epub


@pytest.fixture
def pdf_factory() -> Callable[..., bytes]:
    return build_pdf


@pytest.fixture
def zip_factory() -> Callable[[Dict[str, bytes]], bytes]:
    return build_zip


# Cover payloads are copied byte for byte; only the signature matters.
PNG_PIXEL = b"\x89PNG\r\n\x1a\n" + b"cover-bytes"


@pytest.fixture
def png_pixel() -> bytes:
    return PNG_PIXEL
