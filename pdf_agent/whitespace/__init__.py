"""空白检测引擎：栅格化页面上的空白矩形搜索与固定区域检测。"""

from pdf_agent.whitespace.raster import Raster, IntegralImage
from pdf_agent.whitespace.search import (
    ClearRegion,
    ClearRegionSearch,
    PageRegion,
    PageWhitespace,
    PREFERENCES,
    find_clear_region,
    find_page_whitespace,
)
from pdf_agent.whitespace.checks import (
    MARGIN_EDGES,
    PAGE_NUMBER_SLOTS,
    RegionCheck,
    check_margins,
    check_page_number_slots,
)

__all__ = [
    "Raster",
    "IntegralImage",
    "ClearRegion",
    "ClearRegionSearch",
    "PageRegion",
    "PageWhitespace",
    "PREFERENCES",
    "find_clear_region",
    "find_page_whitespace",
    "MARGIN_EDGES",
    "PAGE_NUMBER_SLOTS",
    "RegionCheck",
    "check_margins",
    "check_page_number_slots",
]
