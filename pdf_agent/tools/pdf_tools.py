"""PDF 工具实现。

每个函数接收已校验的入参模型和 ToolContext，返回 ToolResult。
调用方错误（页码越界、文档不存在等）抛出 ToolInputError，由执行器转换为 success=False。
渲染类工具不会因为几何位置失败：找不到空白时回退到固定角落。
"""

import math
import secrets
from dataclasses import dataclass
from datetime import date
from typing import Dict, List, Optional, Tuple

import fitz  # PyMuPDF

from pdf_agent.domain.exceptions import ToolInputError
from pdf_agent.pdf import operations as ops
from pdf_agent.tools.context import ToolContext
from pdf_agent.tools.definitions import ProducedFile, ToolResult
from pdf_agent.tools.schemas import (
    AddPageNumbersInput,
    AddStampInput,
    AddWatermarkInput,
    CheckMarginsInput,
    CheckPageNumberPositionsInput,
    ClearRevisedDocumentsInput,
    CombinePdfsInput,
    DeleteDocumentsInput,
    ExtractTextInput,
    FindWhitespaceInput,
    MovePagesInput,
    PrepareStampInput,
    SplitPdfInput,
    StampStyle,
)
from pdf_agent.whitespace import (
    MARGIN_EDGES,
    PAGE_NUMBER_SLOTS,
    PageWhitespace,
    check_margins as check_margin_bands,
    check_page_number_slots,
    find_page_whitespace,
)

POINTS_PER_INCH = 72
WHITESPACE_MARGIN_INCHES = 0.5
STAMP_SLACK_INCHES = 0.1
FALLBACK_MARGIN_POINTS = 36
DEFAULT_MARGIN_INCHES = 0.5
MAX_TEXT_CHARS = 50000
LINE_HEIGHT_FACTOR = 1.2
AVG_CHAR_WIDTH_FACTOR = 0.5


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _new_id() -> str:
    return secrets.token_hex(8)


def _pdf_name(name: str) -> str:
    return name if name.lower().endswith(".pdf") else f"{name}.pdf"


def _store(ctx: ToolContext, name: str, data: bytes, pages: str) -> ProducedFile:
    stored = ctx.store_pdf(f"{name}-{secrets.token_hex(4)}.pdf", data)
    return ProducedFile(id=_new_id(), filename=_pdf_name(name), url=stored.url, pages=pages)


def _open(ctx: ToolContext, document_id: str) -> fitz.Document:
    return ops.open_pdf(ctx.load_bytes(document_id), document_id)


def _page_index(doc: fitz.Document, page_number: int) -> int:
    if page_number < 1 or page_number > doc.page_count:
        raise ToolInputError(
            code="INVALID_PAGE",
            message=f"Page {page_number} does not exist; the document has {doc.page_count} page(s)",
        )
    return page_number - 1


# ---- 页码范围 / 合并 / 重排 ----


def split_pdf(args: SplitPdfInput, ctx: ToolContext) -> ToolResult:
    """按页码范围拆分。先校验全部范围，再写任何输出。"""

    src = _open(ctx, args.document_id)
    try:
        total = src.page_count
        plans: List[Tuple[int, int, Optional[str]]] = []
        for rng in args.page_ranges:
            label = f"{rng.start}-{rng.end}"
            if rng.start < 1:
                raise ToolInputError(code="INVALID_PAGE_RANGE", message=f"Invalid page range {label}: start must be at least 1")
            if rng.end < rng.start:
                raise ToolInputError(code="INVALID_PAGE_RANGE", message=f"Invalid page range {label}: end is before start")
            if rng.start > total:
                raise ToolInputError(
                    code="INVALID_PAGE_RANGE",
                    message=f"Invalid page range {label}: the document has only {total} page(s)",
                )
            plans.append((rng.start, min(rng.end, total), rng.output_name))

        files = []
        for start, end, output_name in plans:
            data = ops.copy_pages(src, range(start - 1, end))
            files.append(_store(ctx, output_name or f"split_{start}-{end}", data, pages=f"{start}-{end}"))
    finally:
        src.close()
    return ToolResult.ok(
        {"message": f"Split PDF into {len(files)} files. Document IDs: {', '.join(f.id for f in files)}"},
        files=files,
    )


def combine_pdfs(args: CombinePdfsInput, ctx: ToolContext) -> ToolResult:
    sources = []
    try:
        for document_id in args.document_ids:
            sources.append(_open(ctx, document_id))
        total = sum(s.page_count for s in sources)
        data = ops.merge(sources)
    finally:
        for s in sources:
            s.close()
    produced = _store(ctx, args.output_name or "combined", data, pages=str(total))
    return ToolResult.ok(
        {
            "message": f"Combined {len(args.document_ids)} PDFs. New document ID: {produced.id}",
            **produced.to_dict(),
        }
    )


def move_pages(args: MovePagesInput, ctx: ToolContext) -> ToolResult:
    """重排页面；越界页码被静默丢弃，全部越界时报错（PDF 不能没有页）。"""

    src = _open(ctx, args.document_id)
    try:
        total = src.page_count
        kept = [p for p in args.page_order if 1 <= p <= total]
        dropped = [p for p in args.page_order if not 1 <= p <= total]
        if not kept:
            raise ToolInputError(
                code="INVALID_PAGE_ORDER",
                message=f"None of the pages {args.page_order} exist; the document has {total} page(s)",
            )
        data = ops.copy_pages(src, [p - 1 for p in kept])
    finally:
        src.close()
    produced = _store(ctx, args.output_name or "reordered", data, pages=str(len(kept)))
    payload = {
        "message": f"Reordered {len(kept)} pages. New document ID: {produced.id}",
        **produced.to_dict(),
        "pageOrder": kept,
    }
    if dropped:
        payload["droppedPages"] = dropped
    return ToolResult.ok(payload)


# ---- 渲染 ----


def add_watermark(args: AddWatermarkInput, ctx: ToolContext) -> ToolResult:
    opacity = _clamp(args.opacity, 0.0, 1.0)
    font_size = _clamp(args.font_size, 6, 200)
    rotation = args.rotation % 360
    doc = _open(ctx, args.document_id)
    try:
        width = ops.text_width(args.text, font_size)
        for page in doc:
            page_w, page_h = ops.page_size(page)
            center = (page_w / 2, page_h / 2)
            ops.draw_text(
                page,
                center[0] - width / 2,
                center[1] - font_size / 3,
                args.text,
                font_size=font_size,
                color=(0.5, 0.5, 0.5),
                opacity=opacity,
                rotation=rotation,
                pivot=center,
            )
        pages = doc.page_count
        data = ops.to_bytes(doc)
    finally:
        doc.close()
    produced = _store(ctx, f"{args.document_id}_watermarked", data, pages=str(pages))
    return ToolResult.ok(
        {"message": f'Added watermark "{args.text}". New document ID: {produced.id}', **produced.to_dict()}
    )


def _page_number_origin(position: str, page_w: float, page_h: float, text_w: float) -> Tuple[float, float]:
    x = page_w / 2 - text_w / 2
    y = 20.0
    if position.startswith("top"):
        y = page_h - 30
    if position.endswith("left"):
        x = 30.0
    elif position.endswith("right"):
        x = page_w - 30 - text_w
    return x, y


def add_page_numbers(args: AddPageNumbersInput, ctx: ToolContext) -> ToolResult:
    font_size = _clamp(args.font_size, 4, 72)
    doc = _open(ctx, args.document_id)
    try:
        total = doc.page_count
        for index, page in enumerate(doc):
            text = args.format.replace("{n}", str(args.start_number + index)).replace("{total}", str(total))
            page_w, page_h = ops.page_size(page)
            x, y = _page_number_origin(args.position, page_w, page_h, ops.text_width(text, font_size))
            ops.draw_text(page, x, y, text, font_size=font_size)
        data = ops.to_bytes(doc)
    finally:
        doc.close()
    produced = _store(ctx, f"{args.document_id}_numbered", data, pages=str(total))
    return ToolResult.ok(
        {"message": f"Added page numbers to {total} pages. New document ID: {produced.id}", **produced.to_dict()}
    )


# ---- 读取 / 检测 ----


def extract_text(args: ExtractTextInput, ctx: ToolContext) -> ToolResult:
    doc = _open(ctx, args.document_id)
    try:
        total = doc.page_count
        numbers = args.pages or list(range(1, total + 1))
        indices = [_page_index(doc, n) for n in numbers]
        texts = ops.extract_pages_text(doc, indices)
        info = ops.metadata(doc)
    finally:
        doc.close()
    text = "\n".join(texts)
    payload = {"totalPages": total, "pages": numbers, "text": text[:MAX_TEXT_CHARS], "info": info}
    if len(text) > MAX_TEXT_CHARS:
        payload["truncated"] = True
    return ToolResult.ok(payload)


def check_margins(args: CheckMarginsInput, ctx: ToolContext) -> ToolResult:
    if args.margin_inches is not None:
        margin_inches = args.margin_inches
    elif args.margin_size is not None:
        margin_inches = args.margin_size / POINTS_PER_INCH
    else:
        margin_inches = DEFAULT_MARGIN_INCHES
    margin_inches = _clamp(margin_inches, 0.0, 4.0)
    dpi = ctx.check_dpi
    doc = _open(ctx, args.document_id)
    try:
        pages = []
        for index in range(doc.page_count):
            raster = ops.render_page(doc, index, dpi)
            check = check_margin_bands(raster, int(margin_inches * dpi), ctx.threshold)
            issues = {edge: not check.clear[edge] for edge in MARGIN_EDGES}
            pages.append(
                {
                    "page": index + 1,
                    "hasContentInMargins": any(issues.values()),
                    "marginIssues": issues,
                    "clearPercentage": check.clear_percentage,
                }
            )
    finally:
        doc.close()
    with_issues = sum(1 for p in pages if p["hasContentInMargins"])
    return ToolResult.ok(
        {
            "marginCheckedInches": margin_inches,
            "totalPages": len(pages),
            "pagesWithMarginIssues": with_issues,
            "pages": pages,
            "hasIssues": with_issues > 0,
        }
    )


def check_page_number_positions(args: CheckPageNumberPositionsInput, ctx: ToolContext) -> ToolResult:
    dpi = ctx.check_dpi
    doc = _open(ctx, args.document_id)
    try:
        numbers = args.pages or list(range(1, doc.page_count + 1))
        pages = []
        for number in numbers:
            if number < 1 or number > doc.page_count:
                continue
            check = check_page_number_slots(ops.render_page(doc, number - 1, dpi), dpi, ctx.threshold)
            pages.append(
                {
                    "page": number,
                    "positions": dict(check.clear),
                    "clearCount": check.clear_count,
                    "allClear": check.all_clear,
                }
            )
    finally:
        doc.close()
    percentages: Dict[str, float] = {}
    for slot in PAGE_NUMBER_SLOTS:
        clear = sum(1 for p in pages if p["positions"][slot])
        percentages[slot] = round(clear / len(pages) * 100, 1) if pages else 0.0
    checked = len(pages) * len(PAGE_NUMBER_SLOTS)
    overall = round(sum(p["clearCount"] for p in pages) / checked * 100, 1) if checked else 0.0
    payload = {
        "totalPages": len(pages),
        "positionPercentages": percentages,
        "overallClearPercentage": overall,
        "pages": pages,
    }
    if pages:
        payload["bestPosition"] = max(PAGE_NUMBER_SLOTS, key=lambda s: percentages[s])
    return ToolResult.ok(payload)


def _locate_whitespace(
    doc: fitz.Document,
    index: int,
    ctx: ToolContext,
    min_width_inches: float,
    min_height_inches: float,
    prefer: str,
) -> PageWhitespace:
    raster = ops.render_page(doc, index, ctx.render_dpi)
    return find_page_whitespace(
        raster,
        ctx.render_dpi,
        min_width_inches,
        min_height_inches,
        prefer=prefer,
        threshold=ctx.threshold,
        margin_inches=WHITESPACE_MARGIN_INCHES,
    )


def find_whitespace(args: FindWhitespaceInput, ctx: ToolContext) -> ToolResult:
    doc = _open(ctx, args.document_id)
    try:
        index = _page_index(doc, args.page_number)
        page_w, page_h = ops.page_size(doc[index])
        result = _locate_whitespace(doc, index, ctx, args.min_width_inches, args.min_height_inches, args.prefer)
    finally:
        doc.close()
    if result.found:
        message = f"Found {len(result.regions)} suitable whitespace region(s) on page {args.page_number}"
    else:
        message = (
            f'No whitespace regions of {args.min_width_inches}"x{args.min_height_inches}" '
            f"found on page {args.page_number}"
        )
    return ToolResult.ok(
        {
            "page": args.page_number,
            "pageWidthInches": page_w / POINTS_PER_INCH,
            "pageHeightInches": page_h / POINTS_PER_INCH,
            "searchedFor": {
                "minWidthInches": args.min_width_inches,
                "minHeightInches": args.min_height_inches,
                "prefer": args.prefer,
            },
            "found": result.found,
            "candidatesFound": result.candidates_found,
            "regions": [r.to_dict() for r in result.regions],
            "message": message,
        }
    )


# ---- 印章 ----


@dataclass
class StampSize:
    width_points: float
    height_points: float

    @property
    def width_inches(self) -> float:
        return self.width_points / POINTS_PER_INCH

    @property
    def height_inches(self) -> float:
        return self.height_points / POINTS_PER_INCH


@dataclass
class StampLayout:
    lines: List[str]
    font_size: float
    border_width: float
    padding: float
    size: StampSize


def format_stamp_date(day: date) -> str:
    return f"{day:%b} {day.day}, {day.year}"


def estimate_stamp_size(lines: List[str], font_size: float, padding: float, border_width: float) -> StampSize:
    """按 Helvetica 平均字宽（0.5 x 字号）和 1.2 倍行高估算印章尺寸。"""

    widest = max((len(line) for line in lines), default=0) * font_size * AVG_CHAR_WIDTH_FACTOR
    return StampSize(
        width_points=widest + padding * 2 + border_width * 2,
        height_points=len(lines) * font_size * LINE_HEIGHT_FACTOR + padding * 2 + border_width * 2,
    )


def stamp_layout(style: StampStyle, today: Optional[date] = None) -> StampLayout:
    font_size = _clamp(style.font_size, 4, 144)
    border_width = _clamp(style.border_width, 0, 20)
    padding = _clamp(style.padding, 0, 100)
    lines = style.text.split("\n")
    if style.include_date:
        lines.append(format_stamp_date(today or date.today()))
    return StampLayout(
        lines=lines,
        font_size=font_size,
        border_width=border_width,
        padding=padding,
        size=estimate_stamp_size(lines, font_size, padding, border_width),
    )


def _ceil_tenth(value: float) -> float:
    return math.ceil(round(value * 10, 6)) / 10


def prepare_stamp(args: PrepareStampInput, ctx: ToolContext) -> ToolResult:
    layout = stamp_layout(args)
    size = layout.size
    return ToolResult.ok(
        {
            "stampText": "\n".join(layout.lines),
            "estimatedSize": {
                "widthInches": round(size.width_inches, 2),
                "heightInches": round(size.height_inches, 2),
                "widthPoints": round(size.width_points),
                "heightPoints": round(size.height_points),
            },
            "styling": {
                "fontSize": layout.font_size,
                "borderWidth": layout.border_width,
                "padding": layout.padding,
                "includeDate": args.include_date,
            },
            "recommendation": (
                f"Use find_whitespace with minWidthInches={_ceil_tenth(size.width_inches)} and "
                f"minHeightInches={_ceil_tenth(size.height_inches)} to find a suitable location"
            ),
        }
    )


def _stamp_origin(
    args: AddStampInput,
    doc: fitz.Document,
    index: int,
    ctx: ToolContext,
    size: StampSize,
) -> Tuple[float, float, str]:
    """返回印章左下角的文档坐标 (x, y) 及定位方式 explicit / whitespace / fallback。"""

    page_w, page_h = ops.page_size(doc[index])
    explicit = args.x is not None or args.x_inches is not None
    if args.auto_position is False or explicit:
        if args.x is not None:
            x = args.x
        elif args.x_inches is not None:
            x = args.x_inches * POINTS_PER_INCH
        else:
            x = 72.0
        if args.y is not None:
            y = args.y
        elif args.y_inches is not None:
            y = args.y_inches * POINTS_PER_INCH
        else:
            y = page_h - size.height_points - 72
        return x, y, "explicit"

    found = _locate_whitespace(
        doc,
        index,
        ctx,
        size.width_inches + STAMP_SLACK_INCHES,
        size.height_inches + STAMP_SLACK_INCHES,
        args.prefer_position,
    )
    if found.regions:
        region = found.regions[0]
        return region.x_points, region.y_points, "whitespace"

    prefer = args.prefer_position
    x = page_w - size.width_points - FALLBACK_MARGIN_POINTS if prefer.endswith("right") else FALLBACK_MARGIN_POINTS
    y = page_h - size.height_points - FALLBACK_MARGIN_POINTS if prefer.startswith("top") else FALLBACK_MARGIN_POINTS
    return x, y, "fallback"


def add_stamp(args: AddStampInput, ctx: ToolContext) -> ToolResult:
    layout = stamp_layout(args)
    size = layout.size
    opacity = _clamp(args.opacity, 0.0, 1.0)
    color = args.color.as_fractions()
    doc = _open(ctx, args.document_id)
    try:
        index = _page_index(doc, args.page_number)
        x, y, placement = _stamp_origin(args, doc, index, ctx, size)
        page = doc[index]
        if args.background_color is not None:
            ops.draw_rect(page, x, y, size.width_points, size.height_points, fill=args.background_color.as_fractions(), opacity=opacity)
        ops.draw_rect(
            page,
            x,
            y,
            size.width_points,
            size.height_points,
            border_color=color,
            border_width=layout.border_width,
            opacity=opacity,
        )
        baseline = y + size.height_points - layout.padding - layout.font_size
        for line in layout.lines:
            line_w = ops.text_width(line, layout.font_size)
            ops.draw_text(page, x + (size.width_points - line_w) / 2, baseline, line, font_size=layout.font_size, color=color, opacity=opacity)
            baseline -= layout.font_size * LINE_HEIGHT_FACTOR
        pages = doc.page_count
        data = ops.to_bytes(doc)
    finally:
        doc.close()
    produced = _store(ctx, f"{args.document_id}_stamped", data, pages=str(pages))
    return ToolResult.ok(
        {
            "message": f'Added stamp "{args.text}" to page {args.page_number}. New document ID: {produced.id}',
            **produced.to_dict(),
            "placement": placement,
            "stampPosition": {
                "page": args.page_number,
                "xInches": x / POINTS_PER_INCH,
                "yInches": y / POINTS_PER_INCH,
                "widthInches": size.width_inches,
                "heightInches": size.height_inches,
            },
        }
    )


# ---- 破坏性操作（只能经由回调） ----


def clear_revised_documents(args: ClearRevisedDocumentsInput, ctx: ToolContext) -> ToolResult:
    revised = [d.id for d in ctx.documents if d.is_revised]
    if ctx.clear_revised_callback is None:
        return ToolResult.ok(
            {
                "message": f"Would clear {len(revised)} revised document(s)",
                "revisedDocumentCount": len(revised),
                "needsCallback": True,
            }
        )
    outcome = ctx.clear_revised_callback()
    ctx.remove_documents(revised)
    return ToolResult.ok(
        {"message": f"Cleared {outcome.deleted_count} revised document(s)", "deletedCount": outcome.deleted_count}
    )


def delete_documents(args: DeleteDocumentsInput, ctx: ToolContext) -> ToolResult:
    """删除指定 revised 文档。original 只计数跳过，从不报错。

    回调拿到完整的 id 列表，由它最终决定哪些可删；本地分区用于试运行和更新本轮视图。
    """

    by_id = {d.id: d for d in ctx.documents}
    revised = [i for i in args.document_ids if i in by_id and by_id[i].is_revised]
    originals = [i for i in args.document_ids if i in by_id and not by_id[i].is_revised]
    unknown = [i for i in args.document_ids if i not in by_id]

    if ctx.delete_documents_callback is None:
        message = f"Would delete {len(revised)} revised document(s)"
        if originals:
            message += f". Would skip {len(originals)} original document(s)."
        payload = {
            "message": message,
            "revisedToDelete": len(revised),
            "originalsSkipped": len(originals),
            "needsCallback": True,
        }
        if unknown:
            payload["unknownIds"] = unknown
        return ToolResult.ok(payload)

    outcome = ctx.delete_documents_callback(list(args.document_ids))
    ctx.remove_documents(revised)
    message = f"Deleted {outcome.deleted_count} revised document(s)"
    if outcome.skipped_originals > 0:
        message += f". Skipped {outcome.skipped_originals} original document(s) (cannot delete originals)."
    payload = {
        "message": message,
        "deletedCount": outcome.deleted_count,
        "skippedOriginals": outcome.skipped_originals,
    }
    if unknown:
        payload["unknownIds"] = unknown
    return ToolResult.ok(payload)
