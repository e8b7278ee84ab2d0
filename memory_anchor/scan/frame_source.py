from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

import cv2
import numpy as np

from memory_anchor.config import CAMERA_HEIGHT, CAMERA_INDEX, CAMERA_WIDTH
from memory_anchor.errors import FrameSourceUnavailable
from memory_anchor.utils.log import get_logger

logger = get_logger(__name__)


class FrameSource(ABC):
    """Exclusively-owned live frame provider (camera-like)."""

    @abstractmethod
    def current_frame(self) -> Optional[np.ndarray]:
        """Latest BGR frame, or None if no frame is available right now."""
        pass

    @abstractmethod
    def release(self) -> None:
        pass


class CameraFrameSource(FrameSource):
    """OpenCV camera. Opening happens in the constructor so a failed open never yields a handle.

    Example:
        >>> source = CameraFrameSource(0)
        >>> frame = source.current_frame()
        >>> source.release()
    """

    def __init__(self, index: int = CAMERA_INDEX, width: int = CAMERA_WIDTH, height: int = CAMERA_HEIGHT):
        self.index = int(index)
        cap = cv2.VideoCapture(self.index)
        if not cap.isOpened():
            cap.release()
            raise FrameSourceUnavailable(f"无法打开摄像头: {self.index}")
        cap.set(cv2.CAP_PROP_FRAME_WIDTH, int(width))
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, int(height))
        self._cap = cap
        logger.info(
            f"摄像头已打开: index={self.index}, "
            f"{int(cap.get(cv2.CAP_PROP_FRAME_WIDTH))}x{int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT))}"
        )

    def current_frame(self) -> Optional[np.ndarray]:
        if self._cap is None:
            return None
        ok, frame = self._cap.read()
        if not ok or frame is None:
            return None
        return frame

    def release(self) -> None:
        if self._cap is not None:
            self._cap.release()
            self._cap = None
            logger.info(f"摄像头已释放: index={self.index}")
