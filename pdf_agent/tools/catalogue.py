"""暴露给 LLM 的工具目录（名称、描述、参数 schema）。

这里的 schema 只用于提示模型；运行时校验由 tools.schemas 中的 pydantic 模型完成。
"""

from typing import List

from pdf_agent.tools.definitions import ToolDef, ToolName, ToolParam


def _document_id(description: str) -> ToolParam:
    return ToolParam(name="documentId", description=description, required=True, schema={"type": "string"})


def _number(name: str, description: str) -> ToolParam:
    return ToolParam(name=name, description=description, required=False, schema={"type": "number"})


_PAGE_NUMBER_POSITIONS = ["bottom-center", "bottom-right", "bottom-left", "top-center", "top-right", "top-left"]
_PREFERENCES = ["bottom-right", "bottom-left", "top-right", "top-left", "bottom", "top", "any"]
_CORNERS = ["bottom-right", "bottom-left", "top-right", "top-left"]


def default_tool_defs() -> List[ToolDef]:
    defs = [
        ToolDef(
            name=ToolName.SPLIT_PDF.value,
            description=(
                "Split a PDF into multiple files by page ranges. Use this when the user wants to "
                "separate pages or create multiple documents from one PDF."
            ),
            params={
                "documentId": _document_id("ID of the document to split (use the ID from available documents)"),
                "pageRanges": ToolParam(
                    name="pageRanges",
                    description="Array of page ranges to extract",
                    required=True,
                    schema={
                        "type": "array",
                        "items": {
                            "type": "object",
                            "properties": {
                                "start": {"type": "integer", "description": "1-indexed start page number"},
                                "end": {"type": "integer", "description": "1-indexed end page number (inclusive)"},
                                "outputName": {"type": "string", "description": "Name for the output file"},
                            },
                            "required": ["start", "end"],
                        },
                    },
                ),
            },
        ),
        ToolDef(
            name=ToolName.COMBINE_PDFS.value,
            description=(
                "Combine multiple PDF files into a single document. Use this when the user wants to "
                "merge or concatenate PDFs."
            ),
            params={
                "documentIds": ToolParam(
                    name="documentIds",
                    description="Array of document IDs to combine in order",
                    required=True,
                    schema={"type": "array", "items": {"type": "string"}},
                ),
                "outputName": ToolParam(
                    name="outputName",
                    description="Name for the combined PDF file",
                    required=False,
                    schema={"type": "string"},
                ),
            },
        ),
        ToolDef(
            name=ToolName.MOVE_PAGES.value,
            description=(
                "Reorder the pages of a PDF. pageOrder lists 1-indexed page numbers in the new order; "
                "pages left out of the list are dropped and numbers outside the document are ignored."
            ),
            params={
                "documentId": _document_id("ID of the document to reorder"),
                "pageOrder": ToolParam(
                    name="pageOrder",
                    description="New page order, e.g. [3, 1, 2]",
                    required=True,
                    schema={"type": "array", "items": {"type": "integer"}},
                ),
                "outputName": ToolParam(
                    name="outputName",
                    description="Name for the reordered PDF file",
                    required=False,
                    schema={"type": "string"},
                ),
            },
        ),
        ToolDef(
            name=ToolName.ADD_WATERMARK.value,
            description=(
                "Add a text watermark to all pages of a PDF. Use this for branding, confidentiality "
                "marks, or draft labels."
            ),
            params={
                "documentId": _document_id("ID of the document to watermark"),
                "text": ToolParam(name="text", description="Watermark text to add", required=True, schema={"type": "string"}),
                "opacity": _number("opacity", "Opacity from 0.0 to 1.0 (default 0.3)"),
                "fontSize": _number("fontSize", "Font size in points (default 48)"),
                "rotation": _number("rotation", "Rotation angle in degrees (default 45)"),
            },
        ),
        ToolDef(
            name=ToolName.ADD_PAGE_NUMBERS.value,
            description="Add page numbers to a PDF document. Use this to number pages for reference or organization.",
            params={
                "documentId": _document_id("ID of the document to add page numbers to"),
                "position": ToolParam(
                    name="position",
                    description="Position of page numbers on the page (default bottom-center)",
                    required=False,
                    schema={"type": "string", "enum": _PAGE_NUMBER_POSITIONS},
                ),
                "startNumber": ToolParam(
                    name="startNumber",
                    description="Starting page number (default 1)",
                    required=False,
                    schema={"type": "integer"},
                ),
                "format": ToolParam(
                    name="format",
                    description='Format string with {n} and {total} placeholders (default "Page {n} of {total}")',
                    required=False,
                    schema={"type": "string"},
                ),
            },
        ),
        ToolDef(
            name=ToolName.EXTRACT_TEXT.value,
            description="Extract text content from a PDF document. Use this to read or analyze PDF text.",
            params={
                "documentId": _document_id("ID of the document to extract text from"),
                "pages": ToolParam(
                    name="pages",
                    description="Optional 1-indexed page numbers to extract (default all pages)",
                    required=False,
                    schema={"type": "array", "items": {"type": "integer"}},
                ),
            },
        ),
        ToolDef(
            name=ToolName.CHECK_MARGINS.value,
            description=(
                "Analyze PDF margins to detect content that might be cut off during printing. "
                "Returns per-page top/bottom/left/right issues."
            ),
            params={
                "documentId": _document_id("ID of the document to check"),
                "marginInches": _number("marginInches", "Minimum safe margin in inches (default 0.5)"),
                "marginSize": _number("marginSize", "Minimum safe margin in points (alternative to marginInches)"),
            },
        ),
        ToolDef(
            name=ToolName.CHECK_PAGE_NUMBER_POSITIONS.value,
            description=(
                "Check whether the six standard page-number positions (top/bottom x left/center/right) "
                "are clear on each page, to decide where page numbers can go."
            ),
            params={
                "documentId": _document_id("ID of the document to check"),
                "pages": ToolParam(
                    name="pages",
                    description="Optional 1-indexed page numbers to check (default all pages)",
                    required=False,
                    schema={"type": "array", "items": {"type": "integer"}},
                ),
            },
        ),
        ToolDef(
            name=ToolName.FIND_WHITESPACE.value,
            description=(
                "Find clear rectangular areas in a PDF suitable for stamps, signatures, or annotations. "
                "Uses image analysis to detect actual whitespace. Returns coordinates of whitespace "
                "regions ranked by preference, in PDF coordinates (origin bottom-left)."
            ),
            params={
                "documentId": _document_id("ID of the document to analyze"),
                "pageNumber": ToolParam(
                    name="pageNumber",
                    description="1-indexed page number to analyze (default 1)",
                    required=False,
                    schema={"type": "integer"},
                ),
                "minWidthInches": _number("minWidthInches", "Minimum width in inches (default 1.5)"),
                "minHeightInches": _number("minHeightInches", "Minimum height in inches (default 0.5)"),
                "prefer": ToolParam(
                    name="prefer",
                    description="Preferred location for the whitespace (default bottom-right)",
                    required=False,
                    schema={"type": "string", "enum": _PREFERENCES},
                ),
            },
        ),
        ToolDef(
            name=ToolName.PREPARE_STAMP.value,
            description=(
                "Estimate the size needed for a stamp with given text. Use this BEFORE find_whitespace "
                "to know what dimensions to search for. Returns recommended minWidthInches and "
                "minHeightInches for find_whitespace."
            ),
            params={
                "text": ToolParam(
                    name="text",
                    description='The stamp text (e.g., "EXHIBIT A", "FILED")',
                    required=True,
                    schema={"type": "string"},
                ),
                "fontSize": _number("fontSize", "Font size in points (default 14)"),
                "borderWidth": _number("borderWidth", "Border width in points (default 2)"),
                "padding": _number("padding", "Padding inside border in points (default 10)"),
                "includeDate": ToolParam(
                    name="includeDate",
                    description="Whether to include current date below text (default true)",
                    required=False,
                    schema={"type": "boolean"},
                ),
            },
        ),
        ToolDef(
            name=ToolName.ADD_STAMP.value,
            description=(
                "Add a positioned stamp/label to a PDF page. Can auto-position by finding whitespace or "
                "use explicit coordinates. The stamp includes a border and optional background."
            ),
            params={
                "documentId": _document_id("ID of the document to stamp"),
                "text": ToolParam(
                    name="text",
                    description='Stamp text (e.g., "EXHIBIT A", "FILED")',
                    required=True,
                    schema={"type": "string"},
                ),
                "pageNumber": ToolParam(
                    name="pageNumber",
                    description="1-indexed page number to stamp (default 1)",
                    required=False,
                    schema={"type": "integer"},
                ),
                "xInches": _number("xInches", "X position in inches from left edge (optional, auto-positions if not provided)"),
                "yInches": _number("yInches", "Y position in inches from bottom edge (optional, auto-positions if not provided)"),
                "fontSize": _number("fontSize", "Font size in points (default 14)"),
                "includeDate": ToolParam(
                    name="includeDate",
                    description="Include current date below text (default true)",
                    required=False,
                    schema={"type": "boolean"},
                ),
                "autoPosition": ToolParam(
                    name="autoPosition",
                    description="Auto-find whitespace for positioning (default true if no x/y provided)",
                    required=False,
                    schema={"type": "boolean"},
                ),
                "preferPosition": ToolParam(
                    name="preferPosition",
                    description="Preferred corner for auto-positioning (default top-right)",
                    required=False,
                    schema={"type": "string", "enum": _CORNERS},
                ),
                "opacity": _number("opacity", "Stamp opacity from 0.0 to 1.0 (default 1.0)"),
            },
        ),
        ToolDef(
            name=ToolName.CLEAR_REVISED_DOCUMENTS.value,
            description=(
                "Clear all revised/output documents from the workspace. Use this when starting fresh work "
                "or when the user wants to clean up previous results. Original uploads are kept."
            ),
            params={},
        ),
        ToolDef(
            name=ToolName.DELETE_DOCUMENTS.value,
            description=(
                "Delete specific revised documents by their IDs. Use this to clean up intermediate results "
                "while keeping the final output documents. Cannot delete original uploaded documents."
            ),
            params={
                "documentIds": ToolParam(
                    name="documentIds",
                    description="Array of document IDs to delete",
                    required=True,
                    schema={"type": "array", "items": {"type": "string"}},
                ),
            },
        ),
    ]
    return defs
