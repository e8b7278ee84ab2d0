from __future__ import annotations

from pathlib import Path

import cv2
import numpy as np
import pytest

from memory_anchor.errors import InvalidImage, InvalidProfile, NoFaceDetected
from memory_anchor.face.enrollment import EnrollmentService, generate_person_id
from memory_anchor.face.extractor import EmbeddingExtractor
from memory_anchor.face.registry import FaceRegistry
from memory_anchor.face.types import Profile, as_embedding


class _FakeExtractor(EmbeddingExtractor):
    """Treats a non-zero image as containing a face; the embedding is the mean pixel per channel."""

    def __init__(self):
        self.calls = 0

    def extract(self, image):
        self.calls += 1
        img = np.asarray(image, dtype=np.float32)
        if not img.any():
            return None
        return as_embedding(img.reshape(-1, 3).mean(axis=0) / 255.0)


class _BrokenExtractor(EmbeddingExtractor):
    def extract(self, image):
        raise RuntimeError("model crashed")


def _img_with_face(value: int = 128) -> np.ndarray:
    return np.full((32, 32, 3), value, dtype=np.uint8)


def _img_without_face() -> np.ndarray:
    return np.zeros((32, 32, 3), dtype=np.uint8)


def _service(extractor=None):
    registry = FaceRegistry()
    ids = iter(f"person_{i}" for i in range(100))
    service = EnrollmentService(extractor or _FakeExtractor(), registry, id_factory=lambda: next(ids))
    return service, registry


def test_enroll_with_face_adds_record():
    service, registry = _service()
    face = service.enroll(_img_with_face(), Profile(id="", name="Sarah"))
    assert len(registry) == 1
    assert face.id == "person_0"
    assert registry.get("person_0") is face


def test_enroll_without_face_fails_and_registry_unchanged():
    service, registry = _service()
    with pytest.raises(NoFaceDetected):
        service.enroll(_img_without_face(), Profile(id="", name="Sarah"))
    assert len(registry) == 0


def test_blank_name_rejected_before_extraction():
    extractor = _FakeExtractor()
    service, registry = _service(extractor)
    with pytest.raises(InvalidProfile):
        service.enroll(_img_with_face(), Profile(id="x", name="   "))
    assert extractor.calls == 0
    assert len(registry) == 0


@pytest.mark.parametrize("reserved", ["alone", "unknown"])
def test_reserved_ids_rejected(reserved):
    service, _ = _service()
    with pytest.raises(InvalidProfile):
        service.enroll(_img_with_face(), Profile(id=reserved, name="Sarah"))


def test_reenroll_same_id_replaces_record():
    service, registry = _service()
    service.enroll(_img_with_face(100), Profile(id="daughter", name="Sarah", relation="Daughter"))
    second = service.enroll(_img_with_face(200), Profile(id="daughter", name="Sarah B.", relation="Daughter"))

    assert len(registry) == 1
    stored = registry.get("daughter")
    assert stored.profile.name == "Sarah B."
    np.testing.assert_allclose(stored.embedding, second.embedding)
    np.testing.assert_allclose(stored.embedding, [200 / 255.0] * 3, atol=1e-6)


def test_profile_is_trimmed_and_defaults_filled():
    service, _ = _service()
    face = service.enroll(_img_with_face(), Profile(id="", name="  Daniel Chen ", age=35))
    p = face.profile
    assert p.name == "Daniel Chen"
    assert p.age == 35
    assert p.relation == "Unknown relation"
    assert p.last_visit == "Not recorded"
    assert p.conversation_summary == "No previous conversation recorded."
    assert p.current_update == "No current updates."
    assert p.avatar == "👤"


def test_extractor_error_reported_as_no_face():
    service, registry = _service(_BrokenExtractor())
    with pytest.raises(NoFaceDetected) as exc_info:
        service.enroll(_img_with_face(), Profile(id="", name="Sarah"))
    assert isinstance(exc_info.value.__cause__, RuntimeError)
    assert len(registry) == 0


def test_enroll_file_records_image_path(tmp_path: Path):
    fp = tmp_path / "sarah.png"
    assert cv2.imwrite(str(fp), _img_with_face())
    service, registry = _service()
    face = service.enroll_file(fp, Profile(id="sarah", name="Sarah"))
    assert face.image_ref == str(fp)
    assert "sarah" in registry


def test_enroll_file_rejects_non_image(tmp_path: Path):
    fp = tmp_path / "notes.txt"
    fp.write_text("hello", encoding="utf-8")
    service, registry = _service()
    with pytest.raises(InvalidImage):
        service.enroll_file(fp, Profile(id="", name="Sarah"))
    with pytest.raises(InvalidImage):
        service.enroll_file(tmp_path / "missing.jpg", Profile(id="", name="Sarah"))
    assert len(registry) == 0


def test_remove_delegates_to_registry():
    service, registry = _service()
    service.enroll(_img_with_face(), Profile(id="a", name="A"))
    assert service.remove("a") is True
    assert service.remove("a") is False
    assert len(registry) == 0


def test_generated_ids_have_person_prefix():
    assert generate_person_id().startswith("person_")


@pytest.mark.parametrize("age", ["abc", float("inf"), [3]])
def test_unparseable_age_rejected_before_extraction(age):
    extractor = _FakeExtractor()
    service, registry = _service(extractor)
    with pytest.raises(InvalidProfile):
        service.enroll(_img_with_face(), Profile(id="", name="Sarah", age=age))
    assert extractor.calls == 0
    assert len(registry) == 0


def test_enroll_file_generates_one_id(tmp_path: Path):
    fp = tmp_path / "sarah.png"
    assert cv2.imwrite(str(fp), _img_with_face())
    issued = []

    def id_factory():
        issued.append(f"person_{len(issued)}")
        return issued[-1]

    service = EnrollmentService(_FakeExtractor(), FaceRegistry(), id_factory=id_factory)
    face = service.enroll_file(fp, Profile(id="", name="Sarah"))
    assert issued == ["person_0"]
    assert face.id == "person_0"
