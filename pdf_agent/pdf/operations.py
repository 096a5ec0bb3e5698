"""PyMuPDF 底层操作的薄封装。

调用方统一使用 PDF 文档坐标（原点左下角，y 向上，单位 point）；
fitz 的页面坐标原点在左上角，这里负责转换。
"""

from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import fitz  # PyMuPDF
import numpy as np

from pdf_agent.domain.exceptions import ToolInputError
from pdf_agent.whitespace.raster import Raster

POINTS_PER_INCH = 72
FONT_NAME = "helv"

Color = Tuple[float, float, float]


def open_pdf(data: bytes, name: str = "document") -> fitz.Document:
    try:
        return fitz.open(stream=data, filetype="pdf")
    except (RuntimeError, ValueError) as e:
        raise ToolInputError(code="INVALID_PDF", message=f"{name} is not a readable PDF: {e}")


def to_bytes(doc: fitz.Document) -> bytes:
    return doc.tobytes(garbage=3, deflate=True)


def page_count(data: bytes) -> int:
    doc = open_pdf(data)
    try:
        return doc.page_count
    finally:
        doc.close()


def copy_pages(src: fitz.Document, indices: Sequence[int]) -> bytes:
    """按给定顺序复制 0 起始的页，生成新 PDF。"""

    out = fitz.open()
    try:
        for i in indices:
            out.insert_pdf(src, from_page=i, to_page=i)
        return to_bytes(out)
    finally:
        out.close()


def merge(sources: Iterable[fitz.Document]) -> bytes:
    out = fitz.open()
    try:
        for src in sources:
            out.insert_pdf(src)
        return to_bytes(out)
    finally:
        out.close()


def page_size(page: fitz.Page) -> Tuple[float, float]:
    rect = page.rect
    return rect.width, rect.height


def text_width(text: str, font_size: float) -> float:
    return fitz.get_text_length(text, fontname=FONT_NAME, fontsize=font_size)


def draw_text(
    page: fitz.Page,
    x: float,
    y: float,
    text: str,
    font_size: float,
    color: Color = (0, 0, 0),
    opacity: float = 1.0,
    rotation: float = 0.0,
    pivot: Optional[Tuple[float, float]] = None,
) -> None:
    """在文档坐标 (x, y)（文字基线起点）绘制一行 Helvetica 文本。

    rotation 为逆时针角度，绕 pivot（文档坐标，默认为文字起点）旋转。
    """

    page_h = page.rect.height
    point = fitz.Point(x, page_h - y)
    morph = None
    if rotation:
        center = fitz.Point(pivot[0], page_h - pivot[1]) if pivot else point
        morph = (center, fitz.Matrix(-rotation))
    page.insert_text(
        point,
        text,
        fontsize=font_size,
        fontname=FONT_NAME,
        color=color,
        morph=morph,
        fill_opacity=opacity,
        stroke_opacity=opacity,
    )


def draw_rect(
    page: fitz.Page,
    x: float,
    y: float,
    width: float,
    height: float,
    border_color: Optional[Color] = None,
    border_width: float = 0,
    fill: Optional[Color] = None,
    opacity: float = 1.0,
) -> None:
    """绘制左下角位于文档坐标 (x, y) 的矩形。"""

    top = page.rect.height - y - height
    page.draw_rect(
        fitz.Rect(x, top, x + width, top + height),
        color=border_color if border_width > 0 else None,
        fill=fill,
        width=border_width,
        stroke_opacity=opacity,
        fill_opacity=opacity,
    )


def render_page(doc: fitz.Document, index: int, dpi: int) -> Raster:
    """把一页栅格化为灰度 Raster（原点左上角）。"""

    pix = doc[index].get_pixmap(dpi=dpi, colorspace=fitz.csGRAY, alpha=False)
    pixels = np.frombuffer(pix.samples, dtype=np.uint8).reshape(pix.height, pix.width, pix.n)
    return Raster(pixels=pixels, channels=pix.n)


def extract_pages_text(doc: fitz.Document, indices: Sequence[int]) -> List[str]:
    return [doc[i].get_text() for i in indices]


def metadata(doc: fitz.Document) -> Dict[str, str]:
    return {k: v for k, v in (doc.metadata or {}).items() if v}
