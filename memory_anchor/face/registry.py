from __future__ import annotations

import threading

from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from memory_anchor.config import STORAGE_KEY
from memory_anchor.errors import StorageCorrupt
from memory_anchor.face.types import EnrolledFace
from memory_anchor.storage.store import KeyValueStore, MemoryStore
from memory_anchor.utils.log import get_logger
from memory_anchor.utils.serializer import decode_registry, encode_registry

logger = get_logger(__name__)


@dataclass
class RegistryConfig:
    # Logical key holding the whole registry in the store.
    storage_key: str = STORAGE_KEY
    # Persist after every put/remove.
    autosave: bool = True


class FaceRegistry:
    """人脸注册表：id -> EnrolledFace，带持久化。

    Copy-on-write: writers build a new dict under `_write_lock` and publish it with
    a single attribute assignment. Published dicts are never mutated again, so
    readers (`all`, `get`) need no lock and never observe a half-applied update.
    """

    def __init__(self, store: Optional[KeyValueStore] = None, config: Optional[RegistryConfig] = None):
        self.config = config or RegistryConfig()
        self.store = store if store is not None else MemoryStore()
        self._faces: Dict[str, EnrolledFace] = {}
        self._write_lock = threading.Lock()
        self.last_warning: Optional[str] = None

    @classmethod
    def open(cls, store: KeyValueStore, config: Optional[RegistryConfig] = None) -> "FaceRegistry":
        registry = cls(store, config)
        registry.load()
        return registry

    def __len__(self) -> int:
        return len(self._faces)

    def __contains__(self, person_id) -> bool:
        return str(person_id) in self._faces

    def get(self, person_id: str) -> Optional[EnrolledFace]:
        return self._faces.get(str(person_id))

    def all(self) -> Tuple[EnrolledFace, ...]:
        """Immutable point-in-time snapshot of every record."""
        return tuple(self._faces.values())

    def put(self, face: EnrolledFace) -> EnrolledFace:
        """插入或替换同 id 的记录。"""
        if not face.id:
            raise ValueError("EnrolledFace without id")
        with self._write_lock:
            current = self._faces
            replaced = face.id in current
            new_faces = {k: v for k, v in current.items() if k != face.id}
            new_faces[face.id] = face
            self._commit(new_faces)
        logger.info(f"{'替换' if replaced else '新增'}人脸: {face.id} ({face.profile.name}), 共 {len(new_faces)} 人")
        return face

    def remove(self, person_id: str) -> bool:
        """删除记录；不存在时为空操作，返回 False。"""
        pid = str(person_id)
        with self._write_lock:
            current = self._faces
            if pid not in current:
                logger.debug(f"删除跳过，未找到: {pid}")
                return False
            new_faces = {k: v for k, v in current.items() if k != pid}
            self._commit(new_faces)
        logger.info(f"已删除人脸: {pid}, 剩余 {len(new_faces)} 人")
        return True

    def _commit(self, new_faces: Dict[str, EnrolledFace]) -> None:
        # Persist first: if the store fails, nothing is published.
        if self.config.autosave:
            self._write(new_faces)
        self._faces = new_faces

    def _write(self, faces: Dict[str, EnrolledFace]) -> None:
        try:
            self.store.put(self.config.storage_key, encode_registry(faces.values()))
        except Exception as e:
            logger.error(f"保存注册表失败: {e}")
            raise

    def save(self) -> None:
        with self._write_lock:
            self._write(self._faces)

    def load(self) -> bool:
        """从存储恢复注册表。

        Fails soft: a missing or unparsable store yields an empty registry, a
        warning in the log and `last_warning`, and returns False.
        """
        self.last_warning = None
        try:
            raw = self.store.get(self.config.storage_key)
            if raw is None:
                self._publish_empty("未找到已保存的注册表，使用空注册表")
                return False
            faces = decode_registry(raw)
        except StorageCorrupt as e:
            self._publish_empty(f"注册表数据损坏，已忽略并使用空注册表: {e}")
            return False
        except OSError as e:
            self._publish_empty(f"读取注册表失败，使用空注册表: {e}")
            return False

        with self._write_lock:
            self._faces = {f.id: f for f in faces}
        logger.info(f"已加载注册表: {len(faces)} 人")
        return True

    def _publish_empty(self, message: str) -> None:
        logger.warning(message)
        self.last_warning = message
        with self._write_lock:
            self._faces = {}
