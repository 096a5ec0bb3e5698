"""固定区域检测：页边距与六个标准页码位置。

与空白搜索共用亮度阈值判定，但只检查命名区域是否全空白，不做搜索。
"""

from dataclasses import dataclass
from typing import Dict, Tuple

import numpy as np

from pdf_agent.whitespace.raster import Raster
from pdf_agent.whitespace.search import DEFAULT_THRESHOLD

MARGIN_EDGES = ("top", "bottom", "left", "right")
PAGE_NUMBER_SLOTS = ("top-left", "top-center", "top-right", "bottom-left", "bottom-center", "bottom-right")

# 页码检测框尺寸与位置（英寸）
SLOT_WIDTH_INCHES = 0.75
SLOT_HEIGHT_INCHES = 0.25
SLOT_EDGE_OFFSET_INCHES = 0.35
SLOT_SIDE_OFFSET_INCHES = 0.4


@dataclass
class RegionCheck:
    """每个命名区域是否空白，以及空白区域占比（百分比）。"""

    clear: Dict[str, bool]

    @property
    def clear_count(self) -> int:
        return sum(1 for v in self.clear.values() if v)

    @property
    def all_clear(self) -> bool:
        return self.clear_count == len(self.clear)

    @property
    def clear_percentage(self) -> float:
        if not self.clear:
            return 0.0
        return round(self.clear_count / len(self.clear) * 100, 1)


def _box_clear(mask: np.ndarray, x: int, y: int, w: int, h: int) -> bool:
    height, width = mask.shape
    x1, y1 = max(0, x), max(0, y)
    x2, y2 = min(width, x + w), min(height, y + h)
    if x2 <= x1 or y2 <= y1:
        return True
    return bool(mask[y1:y2, x1:x2].all())


def check_margins(raster: Raster, margin_px: int, threshold: float = DEFAULT_THRESHOLD) -> RegionCheck:
    """检查四条页边带（宽 margin_px 像素）是否没有内容。"""

    mask = raster.clear_mask(threshold)
    m = max(0, int(margin_px))
    w, h = raster.width, raster.height
    boxes: Dict[str, Tuple[int, int, int, int]] = {
        "top": (0, 0, w, m),
        "bottom": (0, h - m, w, m),
        "left": (0, 0, m, h),
        "right": (w - m, 0, m, h),
    }
    return RegionCheck(clear={edge: _box_clear(mask, *boxes[edge]) for edge in MARGIN_EDGES})


def page_number_slot_boxes(width: int, height: int, dpi: float) -> Dict[str, Tuple[int, int, int, int]]:
    """六个页码位置在栅格坐标中的 (x, y, w, h)。"""

    box_w = int(SLOT_WIDTH_INCHES * dpi)
    box_h = int(SLOT_HEIGHT_INCHES * dpi)
    top_y = int(SLOT_EDGE_OFFSET_INCHES * dpi)
    bottom_y = height - int(SLOT_EDGE_OFFSET_INCHES * dpi) - box_h
    left_x = int(SLOT_SIDE_OFFSET_INCHES * dpi)
    center_x = (width - box_w) // 2
    right_x = width - int(SLOT_SIDE_OFFSET_INCHES * dpi) - box_w
    return {
        "top-left": (left_x, top_y, box_w, box_h),
        "top-center": (center_x, top_y, box_w, box_h),
        "top-right": (right_x, top_y, box_w, box_h),
        "bottom-left": (left_x, bottom_y, box_w, box_h),
        "bottom-center": (center_x, bottom_y, box_w, box_h),
        "bottom-right": (right_x, bottom_y, box_w, box_h),
    }


def check_page_number_slots(raster: Raster, dpi: float, threshold: float = DEFAULT_THRESHOLD) -> RegionCheck:
    mask = raster.clear_mask(threshold)
    boxes = page_number_slot_boxes(raster.width, raster.height, dpi)
    return RegionCheck(clear={slot: _box_clear(mask, *boxes[slot]) for slot in PAGE_NUMBER_SLOTS})
