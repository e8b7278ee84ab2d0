from __future__ import annotations

import time

from dataclasses import replace
from pathlib import Path
from typing import Callable

import numpy as np

from memory_anchor.config import RESERVED_IDS
from memory_anchor.errors import InvalidProfile, NoFaceDetected
from memory_anchor.face.extractor import EmbeddingExtractor
from memory_anchor.face.registry import FaceRegistry
from memory_anchor.face.types import EnrolledFace, Profile
from memory_anchor.utils.image import load_image
from memory_anchor.utils.log import get_logger

logger = get_logger(__name__)


# 可选字段留空时的默认展示文本
DEFAULT_RELATION = "Unknown relation"
DEFAULT_LAST_VISIT = "Not recorded"
DEFAULT_CONVERSATION_SUMMARY = "No previous conversation recorded."
DEFAULT_CURRENT_UPDATE = "No current updates."
DEFAULT_AVATAR = "👤"


def generate_person_id() -> str:
    return f"person_{int(time.time() * 1000)}"


def normalize_profile(profile: Profile, person_id: str) -> Profile:
    """Trim text fields and fill blank optional ones with display defaults."""
    return replace(
        profile,
        id=person_id,
        name=profile.name.strip(),
        relation=profile.relation.strip() or DEFAULT_RELATION,
        last_visit=profile.last_visit.strip() or DEFAULT_LAST_VISIT,
        conversation_summary=profile.conversation_summary.strip() or DEFAULT_CONVERSATION_SUMMARY,
        current_update=profile.current_update.strip() or DEFAULT_CURRENT_UPDATE,
        avatar=profile.avatar.strip() or DEFAULT_AVATAR,
    )


class EnrollmentService:
    """人脸录入：校验资料 -> 提取特征 -> 写入注册表。

    Re-enrolling an existing id replaces the previous record; it is the only way
    to edit a profile.
    """

    def __init__(
        self,
        extractor: EmbeddingExtractor,
        registry: FaceRegistry,
        id_factory: Callable[[], str] = generate_person_id,
    ):
        self.extractor = extractor
        self.registry = registry
        self.id_factory = id_factory

    def _validate(self, profile: Profile) -> str:
        if not (profile.name or "").strip():
            raise InvalidProfile("name is required")
        person_id = (profile.id or "").strip() or self.id_factory()
        if person_id in RESERVED_IDS:
            raise InvalidProfile(f"id {person_id!r} is reserved")
        if profile.age is not None:
            try:
                age = int(profile.age)
            except (TypeError, ValueError, OverflowError) as e:
                raise InvalidProfile(f"invalid age: {profile.age!r}") from e
            if age < 0:
                raise InvalidProfile(f"invalid age: {profile.age}")
        return person_id

    def enroll(self, image: np.ndarray, profile: Profile, image_ref: str = "") -> EnrolledFace:
        """
        录入一个人。

        Raises:
            InvalidProfile: 姓名为空/保留 id（在调用提取器之前校验）
            NoFaceDetected: 图片中没有检测到人脸，需要更换图片
        """
        person_id = self._validate(profile)

        try:
            embedding = self.extractor.extract(image)
        except Exception as e:
            logger.warning(f"录入特征提取失败 ({person_id}): {e}")
            raise NoFaceDetected(f"face extraction failed: {e}") from e
        if embedding is None:
            logger.warning(f"录入图片中未检测到人脸: {profile.name.strip()}")
            raise NoFaceDetected("no face detected in the enrollment image")

        face = EnrolledFace(
            profile=normalize_profile(profile, person_id),
            embedding=embedding,
            image_ref=str(image_ref or ""),
        )
        return self.registry.put(face)

    def enroll_file(self, image_path, profile: Profile) -> EnrolledFace:
        # Name check first so an invalid form never touches the disk or the model.
        person_id = self._validate(profile)
        image = load_image(image_path)
        return self.enroll(image, profile.with_id(person_id), image_ref=str(Path(image_path)))

    def remove(self, person_id: str) -> bool:
        return self.registry.remove(person_id)
