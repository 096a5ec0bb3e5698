"""空白矩形搜索。

在栅格上以目标尺寸的 1/4 为步长滑动窗口，用积分图判定窗口是否完全空白，
再按方向偏好打分排序。找不到空白不是错误，返回 found=False。

栅格坐标原点在左上角（y 向下）；find_page_whitespace 返回的坐标已翻转到
PDF 文档坐标（原点左下角，y 向上）：y_doc = page_height - y_raster - rect_height。
"""

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List

import numpy as np

from pdf_agent.domain.exceptions import ValidationError
from pdf_agent.whitespace.raster import IntegralImage, Raster

POINTS_PER_INCH = 72
DEFAULT_THRESHOLD = 250
DEFAULT_MAX_RESULTS = 5
PREFERENCES = ("bottom-right", "bottom-left", "top-right", "top-left", "bottom", "top", "any")


@dataclass
class ClearRegion:
    """栅格坐标（像素，左上角原点）中的一个候选空白矩形。"""

    x: int
    y: int
    width: int
    height: int
    nx: float
    ny: float
    score: float


@dataclass
class ClearRegionSearch:
    found: bool
    regions: List[ClearRegion] = field(default_factory=list)
    candidates_found: int = 0


@dataclass
class PageRegion:
    """文档坐标（左下角原点）中的空白区域，同时给出英寸和 point。"""

    rank: int
    x_inches: float
    y_inches: float
    x_points: float
    y_points: float
    width_inches: float
    height_inches: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rank": self.rank,
            "xInches": self.x_inches,
            "yInches": self.y_inches,
            "xPoints": self.x_points,
            "yPoints": self.y_points,
            "widthInches": self.width_inches,
            "heightInches": self.height_inches,
        }


@dataclass
class PageWhitespace:
    found: bool
    regions: List[PageRegion] = field(default_factory=list)
    candidates_found: int = 0


def _score(prefer: str, nx: np.ndarray, ny: np.ndarray) -> np.ndarray:
    if prefer == "bottom-right":
        return nx + ny
    if prefer == "bottom-left":
        return (1 - nx) + ny
    if prefer == "top-right":
        return nx + (1 - ny)
    if prefer == "top-left":
        return (1 - nx) + (1 - ny)
    if prefer == "bottom":
        return ny
    if prefer == "top":
        return 1 - ny
    return np.zeros_like(nx)


def find_clear_region(
    raster: Raster,
    min_width: int,
    min_height: int,
    prefer: str = "bottom-right",
    threshold: float = DEFAULT_THRESHOLD,
    margin: int = 0,
    max_results: int = DEFAULT_MAX_RESULTS,
) -> ClearRegionSearch:
    """在栅格中查找至少 min_width x min_height 像素的全空白矩形。

    margin 为四周排除带的像素宽度。候选的归一化位置 (nx, ny) 相对于可搜索区域，
    取值在 [0, 1]。排序为按得分降序的稳定排序，同分保持发现顺序（行优先）。
    """

    min_width = int(min_width)
    min_height = int(min_height)
    if min_width < 1 or min_height < 1:
        raise ValidationError(code="INVALID_REGION_SIZE", message="Minimum region size must be at least 1px")
    if prefer not in PREFERENCES:
        raise ValidationError(code="INVALID_PREFERENCE", message=f"Unknown preference {prefer!r}")
    margin = max(0, int(margin))
    width, height = raster.width, raster.height

    xs = np.arange(margin, width - min_width - margin + 1, max(1, min_width // 4))
    ys = np.arange(margin, height - min_height - margin + 1, max(1, min_height // 4))
    if xs.size == 0 or ys.size == 0:
        return ClearRegionSearch(found=False)

    integral = IntegralImage(raster.clear_mask(threshold))
    clear = integral.clear_windows(xs, ys, min_width, min_height)
    row_idx, col_idx = np.nonzero(clear)
    if row_idx.size == 0:
        return ClearRegionSearch(found=False)

    cand_x = xs[col_idx]
    cand_y = ys[row_idx]
    nx = (cand_x - margin) / max(1, width - min_width - 2 * margin)
    ny = (cand_y - margin) / max(1, height - min_height - 2 * margin)
    scores = _score(prefer, nx, ny)
    order = np.argsort(-scores, kind="stable")[: max(0, max_results)]

    regions = [
        ClearRegion(
            x=int(cand_x[i]),
            y=int(cand_y[i]),
            width=min_width,
            height=min_height,
            nx=float(nx[i]),
            ny=float(ny[i]),
            score=float(scores[i]),
        )
        for i in order
    ]
    return ClearRegionSearch(found=bool(regions), regions=regions, candidates_found=int(row_idx.size))


def find_page_whitespace(
    raster: Raster,
    dpi: float,
    min_width_inches: float,
    min_height_inches: float,
    prefer: str = "bottom-right",
    threshold: float = DEFAULT_THRESHOLD,
    margin_inches: float = 0.5,
    max_results: int = DEFAULT_MAX_RESULTS,
) -> PageWhitespace:
    """以物理尺寸查询一页的空白区域，结果为文档坐标。"""

    min_width_px = max(1, math.ceil(round(min_width_inches * dpi, 6)))
    min_height_px = max(1, math.ceil(round(min_height_inches * dpi, 6)))
    search = find_clear_region(
        raster,
        min_width_px,
        min_height_px,
        prefer=prefer,
        threshold=threshold,
        margin=int(margin_inches * dpi),
        max_results=max_results,
    )
    regions = []
    for rank, region in enumerate(search.regions, start=1):
        x_in = region.x / dpi
        y_in = (raster.height - region.y - region.height) / dpi
        regions.append(
            PageRegion(
                rank=rank,
                x_inches=x_in,
                y_inches=y_in,
                x_points=x_in * POINTS_PER_INCH,
                y_points=y_in * POINTS_PER_INCH,
                width_inches=min_width_inches,
                height_inches=min_height_inches,
            )
        )
    return PageWhitespace(found=search.found, regions=regions, candidates_found=search.candidates_found)
