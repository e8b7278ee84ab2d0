import io

from contextlib import redirect_stderr, redirect_stdout
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

import numpy as np
import torch

from memory_anchor.config import DET_SIZE, MIN_DET_SCORE, RECOGNITION_MODEL
from memory_anchor.errors import ExtractionTransientFailure
from memory_anchor.face.extractor import EmbeddingExtractor
from memory_anchor.face.types import as_embedding
from memory_anchor.utils.log import get_logger, suppress_fds
from memory_anchor.utils.math import l2_normalize

logger = get_logger(__name__)

# 进程内模型缓存：避免录入与扫描（或 pytest 多用例）重复初始化 FaceAnalysis。
# 缓存 key 需要包含会影响输出的关键参数（model name/providers/ctx_id/det_size）。
_FACEAPP_CACHE: Dict[Tuple, Any] = {}


@dataclass
class ExtractorConfig:
    recognition_model: str = RECOGNITION_MODEL
    det_size: int = DET_SIZE
    # 'auto'/'cpu'/'gpu'
    device: str = "auto"
    # Faces below this detector score are ignored.
    min_det_score: float = MIN_DET_SCORE


def _face_area(face) -> float:
    bbox = getattr(face, "bbox", None)
    if bbox is None:
        return 0.0
    try:
        x1, y1, x2, y2 = [float(v) for v in np.asarray(bbox).reshape(-1)[:4]]
    except Exception:
        return 0.0
    return max(0.0, x2 - x1) * max(0.0, y2 - y1)


class InsightFaceExtractor(EmbeddingExtractor):
    """
    基于 InsightFace 的单人脸特征提取器。

    - 每张图只返回一个 embedding：取检测分数最高的人脸（分数相同则取面积更大的）
    - 输出经过 L2 归一化；注意归一化后的欧氏距离与 face-api 描述子不同，
      匹配阈值需要重新标定
    """

    def __init__(self, config: Optional[ExtractorConfig] = None, app: Any = None):
        """
        Args:
            config: 模型参数
            app: 已准备好的 FaceAnalysis 实例（可选，主要用于复用/测试）；为空时按 config 加载
        """
        self.config = config or ExtractorConfig()
        self.det_size: Tuple[int, int] = (int(self.config.det_size), int(self.config.det_size))
        self.ctx_id = -1  # -1表示CPU，0表示第一个GPU
        self._app = app if app is not None else self._initialize_model()

    def _select_device(self) -> str:
        if self.config.device != "auto":
            return self.config.device
        try:
            return "gpu" if torch.cuda.is_available() else "cpu"
        except Exception:
            return "cpu"

    def _initialize_model(self):
        """初始化 InsightFace 模型"""
        device = self._select_device()
        if device == "gpu":
            providers = ["CUDAExecutionProvider"]
            self.ctx_id = 0
        else:
            providers = ["CPUExecutionProvider"]
            self.ctx_id = -1

        face_key = (
            str(self.config.recognition_model),
            tuple(providers),
            int(self.ctx_id),
            tuple(self.det_size),
        )
        cached = _FACEAPP_CACHE.get(face_key)
        if cached is not None:
            return cached

        try:
            # 懒加载：仅在真正需要模型时引入 insightface
            from insightface.app import FaceAnalysis

            with suppress_fds():
                app = FaceAnalysis(
                    name=self.config.recognition_model,
                    providers=providers,
                    allowed_modules=["detection", "recognition"],
                )
            buf = io.StringIO()
            with redirect_stdout(buf), redirect_stderr(buf):
                app.prepare(ctx_id=self.ctx_id, det_size=self.det_size)
        except Exception as e:
            logger.error(f"模型初始化失败: {e}")
            raise

        logger.info(f"已加载 InsightFace 模型: {self.config.recognition_model} ({device})")
        _FACEAPP_CACHE[face_key] = app
        return app

    def extract(self, image: np.ndarray) -> Optional[np.ndarray]:
        if image is None or getattr(image, "size", 0) == 0:
            return None

        try:
            faces = self._app.get(image) or []
        except Exception as e:
            raise ExtractionTransientFailure(f"InsightFace 推理失败: {e}") from e

        candidates = []
        for face in faces:
            if getattr(face, "embedding", None) is None:
                continue
            score = float(getattr(face, "det_score", 0.0) or 0.0)
            if score < float(self.config.min_det_score):
                continue
            candidates.append((score, _face_area(face), face))

        if not candidates:
            return None

        score, _, best = max(candidates, key=lambda c: (c[0], c[1]))
        if len(candidates) > 1:
            logger.debug(f"检测到 {len(candidates)} 张人脸，取分数最高者 ({score:.3f})")
        return as_embedding(l2_normalize(np.asarray(best.embedding, dtype=np.float32).reshape(-1)))
