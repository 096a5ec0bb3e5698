from typing import Callable, Dict, Optional

from pydantic import ValidationError as PydanticValidationError

from pdf_agent.domain.exceptions import BusinessError
from pdf_agent.tools import pdf_tools
from pdf_agent.tools.catalogue import default_tool_defs
from pdf_agent.tools.context import ToolContext
from pdf_agent.tools.definitions import ToolCall, ToolName, ToolResult
from pdf_agent.tools.schemas import TOOL_INPUT_MODELS, ToolInput


ToolHandler = Callable[[ToolInput, ToolContext], ToolResult]

TOOL_HANDLERS: Dict[ToolName, ToolHandler] = {
    ToolName.SPLIT_PDF: pdf_tools.split_pdf,
    ToolName.COMBINE_PDFS: pdf_tools.combine_pdfs,
    ToolName.MOVE_PAGES: pdf_tools.move_pages,
    ToolName.ADD_WATERMARK: pdf_tools.add_watermark,
    ToolName.ADD_PAGE_NUMBERS: pdf_tools.add_page_numbers,
    ToolName.EXTRACT_TEXT: pdf_tools.extract_text,
    ToolName.CHECK_MARGINS: pdf_tools.check_margins,
    ToolName.CHECK_PAGE_NUMBER_POSITIONS: pdf_tools.check_page_number_positions,
    ToolName.FIND_WHITESPACE: pdf_tools.find_whitespace,
    ToolName.PREPARE_STAMP: pdf_tools.prepare_stamp,
    ToolName.ADD_STAMP: pdf_tools.add_stamp,
    ToolName.CLEAR_REVISED_DOCUMENTS: pdf_tools.clear_revised_documents,
    ToolName.DELETE_DOCUMENTS: pdf_tools.delete_documents,
}


def _check_exhaustive() -> None:
    for table_name, table in (("TOOL_HANDLERS", TOOL_HANDLERS), ("TOOL_INPUT_MODELS", TOOL_INPUT_MODELS)):
        missing = [t.value for t in ToolName if t not in table]
        if missing:
            raise RuntimeError(f"{table_name} is missing tools: {', '.join(missing)}")
    declared = {d.name for d in default_tool_defs()}
    undeclared = [t.value for t in ToolName if t.value not in declared]
    if undeclared:
        raise RuntimeError(f"Tool catalogue is missing tools: {', '.join(undeclared)}")


_check_exhaustive()


def _format_validation_error(tool_name: str, exc: PydanticValidationError) -> str:
    problems = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())) or "input"
        problems.append(f"{loc}: {err.get('msg')}")
    return f"Invalid input for {tool_name}: " + "; ".join(problems)


class ToolExecutor:
    """按 ToolName 分发工具调用。

    入参先经 pydantic 模型校验；校验失败和 BusinessError（含 ToolInputError）
    都转换为 success=False 的 ToolResult，错误信息会回传给模型。
    """

    def __init__(self, handlers: Optional[Dict[ToolName, ToolHandler]] = None):
        self._handlers = dict(TOOL_HANDLERS if handlers is None else handlers)

    def execute(self, call: ToolCall, context: ToolContext) -> ToolResult:
        tool = ToolName.parse(call.name)
        handler = self._handlers.get(tool) if tool is not None else None
        if handler is None:
            result = ToolResult.failure(f"Tool {call.name} is not registered")
        else:
            try:
                args = TOOL_INPUT_MODELS[tool].model_validate(call.arguments or {})
                result = handler(args, context)
            except PydanticValidationError as e:
                result = ToolResult.failure(_format_validation_error(call.name, e))
            except BusinessError as e:
                result = ToolResult.failure(e.message)
        result.call_id = call.id
        result.tool_name = call.name
        return result
