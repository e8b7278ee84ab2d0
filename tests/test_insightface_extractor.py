from __future__ import annotations

from types import SimpleNamespace

import numpy as np
import pytest

from memory_anchor.errors import ExtractionTransientFailure
from memory_anchor.face.insightface_extractor import ExtractorConfig, InsightFaceExtractor


class _FakeFaceApp:
    """Stands in for a prepared insightface FaceAnalysis (only `get` is used)."""

    def __init__(self, faces=None, error=None):
        self.faces = faces or []
        self.error = error

    def get(self, image):
        if self.error is not None:
            raise self.error
        return self.faces


def _face(score, bbox, emb):
    return SimpleNamespace(det_score=score, bbox=np.asarray(bbox, dtype=np.float32), embedding=np.asarray(emb, dtype=np.float32))


def _frame():
    return np.zeros((48, 48, 3), dtype=np.uint8)


def test_no_faces_returns_none():
    extractor = InsightFaceExtractor(app=_FakeFaceApp([]))
    assert extractor.extract(_frame()) is None


def test_empty_image_returns_none():
    extractor = InsightFaceExtractor(app=_FakeFaceApp([_face(0.9, [0, 0, 10, 10], [1.0, 0.0])]))
    assert extractor.extract(np.zeros((0, 0, 3), dtype=np.uint8)) is None
    assert extractor.extract(None) is None


def test_picks_highest_score_and_normalizes():
    faces = [
        _face(0.7, [0, 0, 40, 40], [0.0, 3.0]),
        _face(0.95, [0, 0, 10, 10], [3.0, 4.0]),
    ]
    emb = InsightFaceExtractor(app=_FakeFaceApp(faces)).extract(_frame())
    np.testing.assert_allclose(emb, [0.6, 0.8], atol=1e-6)
    assert emb.dtype == np.float32
    assert not emb.flags.writeable


def test_equal_scores_prefer_larger_face():
    faces = [
        _face(0.9, [0, 0, 10, 10], [1.0, 0.0]),
        _face(0.9, [0, 0, 30, 30], [0.0, 1.0]),
    ]
    emb = InsightFaceExtractor(app=_FakeFaceApp(faces)).extract(_frame())
    np.testing.assert_allclose(emb, [0.0, 1.0], atol=1e-6)


def test_low_score_faces_ignored():
    faces = [_face(0.2, [0, 0, 10, 10], [1.0, 0.0])]
    extractor = InsightFaceExtractor(ExtractorConfig(min_det_score=0.5), app=_FakeFaceApp(faces))
    assert extractor.extract(_frame()) is None


def test_inference_error_is_transient_failure():
    extractor = InsightFaceExtractor(app=_FakeFaceApp(error=RuntimeError("onnx session failed")))
    with pytest.raises(ExtractionTransientFailure):
        extractor.extract(_frame())
