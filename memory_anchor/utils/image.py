from __future__ import annotations

from pathlib import Path

import cv2
import numpy as np

from memory_anchor.config import IMAGE_SUFFIXES
from memory_anchor.errors import InvalidImage


def load_image(path) -> np.ndarray:
    """读取录入图片（BGR）。非图片后缀或无法解码时抛出 InvalidImage。"""
    fp = Path(path)
    if fp.suffix.lower() not in IMAGE_SUFFIXES:
        raise InvalidImage(f"不支持的文件类型: {fp.name}（需要 {', '.join(IMAGE_SUFFIXES)}）")
    if not fp.is_file():
        raise InvalidImage(f"文件不存在: {fp}")
    image = cv2.imread(str(fp))
    if image is None:
        raise InvalidImage(f"无法读取图像: {fp}")
    return image
