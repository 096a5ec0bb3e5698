"""页面栅格与积分图。

Raster 显式携带像素格式（通道数）并在构造时校验，避免按固定 3 字节/像素去读任意格式的数据。
亮度：灰度图取原值；RGB / RGBA 取前三个通道的平均值（忽略 alpha）。
"""

from dataclasses import dataclass

import numpy as np

from pdf_agent.domain.exceptions import ValidationError

SUPPORTED_CHANNELS = (1, 3, 4)


@dataclass(frozen=True)
class Raster:
    """一页的像素数据，原点左上角，y 向下。

    - pixels: 形状为 (H, W) 或 (H, W, C) 的数组。
    - channels: 像素格式，1=灰度，3=RGB，4=RGBA。
    """

    pixels: np.ndarray
    channels: int = 1

    def __post_init__(self):
        if self.channels not in SUPPORTED_CHANNELS:
            raise ValidationError(
                code="INVALID_RASTER",
                message=f"Unsupported channel count {self.channels}; expected one of {SUPPORTED_CHANNELS}",
            )
        arr = np.asarray(self.pixels)
        if self.channels == 1 and arr.ndim == 3 and arr.shape[2] == 1:
            arr = arr[:, :, 0]
        if self.channels == 1 and arr.ndim != 2:
            raise ValidationError(
                code="INVALID_RASTER",
                message=f"Grey raster must have shape (H, W), got {arr.shape}",
            )
        if self.channels > 1 and (arr.ndim != 3 or arr.shape[2] != self.channels):
            raise ValidationError(
                code="INVALID_RASTER",
                message=f"Raster with {self.channels} channels must have shape (H, W, {self.channels}), got {arr.shape}",
            )
        object.__setattr__(self, "pixels", arr)

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    def brightness(self) -> np.ndarray:
        if self.channels == 1:
            return self.pixels.astype(np.float64)
        return self.pixels[:, :, :3].astype(np.float64).mean(axis=2)

    def clear_mask(self, threshold: float) -> np.ndarray:
        """亮度 >= threshold 的像素视为空白。"""

        return self.brightness() >= threshold


class IntegralImage:
    """二值空白掩码上的二维前缀和，任意矩形的“全空白”判定为 O(1)。"""

    def __init__(self, mask: np.ndarray):
        h, w = mask.shape
        table = np.zeros((h + 1, w + 1), dtype=np.int64)
        table[1:, 1:] = mask.astype(np.int64).cumsum(axis=0).cumsum(axis=1)
        self._table = table

    def region_sum(self, x: int, y: int, w: int, h: int) -> int:
        t = self._table
        return int(t[y + h, x + w] - t[y, x + w] - t[y + h, x] + t[y, x])

    def is_clear(self, x: int, y: int, w: int, h: int) -> bool:
        return self.region_sum(x, y, w, h) == w * h

    def clear_windows(self, xs: np.ndarray, ys: np.ndarray, w: int, h: int) -> np.ndarray:
        """对窗口左上角网格 ys x xs 一次性判定，返回形状 (len(ys), len(xs)) 的布尔数组。"""

        t = self._table
        y1 = ys[:, None]
        x1 = xs[None, :]
        total = t[y1 + h, x1 + w] - t[y1, x1 + w] - t[y1 + h, x1] + t[y1, x1]
        return total == w * h
