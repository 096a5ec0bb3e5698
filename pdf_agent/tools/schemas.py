"""工具入参模型（每个工具一个 pydantic 模型）。

模型发出的参数是不可信的：执行器在分发前先用这里的模型校验。
字段名使用 snake_case，同时通过 alias 接受模型侧的 camelCase 键（documentId 等）。
数值类样式参数（透明度、字号、旋转角度）只做类型校验，越界值在工具内部夹紧。
"""

from typing import Dict, List, Literal, Optional, Type

from pydantic import BaseModel, ConfigDict, Field

from pdf_agent.tools.definitions import ToolName


Corner = Literal["bottom-right", "bottom-left", "top-right", "top-left"]
Preference = Literal["bottom-right", "bottom-left", "top-right", "top-left", "bottom", "top", "any"]
PageNumberPosition = Literal["bottom-center", "bottom-right", "bottom-left", "top-center", "top-right", "top-left"]


class ToolInput(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class DocumentInput(ToolInput):
    document_id: str = Field(alias="documentId", min_length=1)


class PageRange(ToolInput):
    start: int
    end: int
    output_name: Optional[str] = Field(default=None, alias="outputName")


class SplitPdfInput(DocumentInput):
    page_ranges: List[PageRange] = Field(alias="pageRanges", min_length=1)


class CombinePdfsInput(ToolInput):
    document_ids: List[str] = Field(alias="documentIds", min_length=1)
    output_name: Optional[str] = Field(default=None, alias="outputName")


class MovePagesInput(DocumentInput):
    page_order: List[int] = Field(alias="pageOrder", min_length=1)
    output_name: Optional[str] = Field(default=None, alias="outputName")


class AddWatermarkInput(DocumentInput):
    text: str = Field(min_length=1)
    opacity: float = 0.3
    font_size: float = Field(default=48, alias="fontSize")
    rotation: float = 45


class AddPageNumbersInput(DocumentInput):
    position: PageNumberPosition = "bottom-center"
    start_number: int = Field(default=1, alias="startNumber")
    format: str = "Page {n} of {total}"
    font_size: float = Field(default=10, alias="fontSize")


class ExtractTextInput(DocumentInput):
    pages: Optional[List[int]] = None


class CheckMarginsInput(DocumentInput):
    margin_inches: Optional[float] = Field(default=None, alias="marginInches")
    margin_size: Optional[float] = Field(default=None, alias="marginSize")


class CheckPageNumberPositionsInput(DocumentInput):
    pages: Optional[List[int]] = None


class FindWhitespaceInput(DocumentInput):
    page_number: int = Field(default=1, alias="pageNumber")
    min_width_inches: float = Field(default=1.5, alias="minWidthInches", gt=0)
    min_height_inches: float = Field(default=0.5, alias="minHeightInches", gt=0)
    prefer: Preference = "bottom-right"


class RgbColor(ToolInput):
    r: int = 0
    g: int = 0
    b: int = 0

    def as_fractions(self) -> tuple:
        return tuple(max(0, min(255, c)) / 255 for c in (self.r, self.g, self.b))


class StampStyle(ToolInput):
    text: str = Field(min_length=1)
    font_size: float = Field(default=14, alias="fontSize")
    border_width: float = Field(default=2, alias="borderWidth")
    padding: float = 10
    include_date: bool = Field(default=True, alias="includeDate")


class PrepareStampInput(StampStyle):
    pass


class AddStampInput(StampStyle):
    document_id: str = Field(alias="documentId", min_length=1)
    page_number: int = Field(default=1, alias="pageNumber")
    # x / y 为 point，xInches / yInches 为英寸，均为左下角原点的文档坐标
    x: Optional[float] = None
    y: Optional[float] = None
    x_inches: Optional[float] = Field(default=None, alias="xInches")
    y_inches: Optional[float] = Field(default=None, alias="yInches")
    auto_position: Optional[bool] = Field(default=None, alias="autoPosition")
    prefer_position: Corner = Field(default="top-right", alias="preferPosition")
    opacity: float = 1.0
    color: RgbColor = Field(default_factory=RgbColor)
    background_color: Optional[RgbColor] = Field(default=None, alias="backgroundColor")


class ClearRevisedDocumentsInput(ToolInput):
    pass


class DeleteDocumentsInput(ToolInput):
    document_ids: List[str] = Field(alias="documentIds", min_length=1)


TOOL_INPUT_MODELS: Dict[ToolName, Type[ToolInput]] = {
    ToolName.SPLIT_PDF: SplitPdfInput,
    ToolName.COMBINE_PDFS: CombinePdfsInput,
    ToolName.MOVE_PAGES: MovePagesInput,
    ToolName.ADD_WATERMARK: AddWatermarkInput,
    ToolName.ADD_PAGE_NUMBERS: AddPageNumbersInput,
    ToolName.EXTRACT_TEXT: ExtractTextInput,
    ToolName.CHECK_MARGINS: CheckMarginsInput,
    ToolName.CHECK_PAGE_NUMBER_POSITIONS: CheckPageNumberPositionsInput,
    ToolName.FIND_WHITESPACE: FindWhitespaceInput,
    ToolName.PREPARE_STAMP: PrepareStampInput,
    ToolName.ADD_STAMP: AddStampInput,
    ToolName.CLEAR_REVISED_DOCUMENTS: ClearRevisedDocumentsInput,
    ToolName.DELETE_DOCUMENTS: DeleteDocumentsInput,
}
