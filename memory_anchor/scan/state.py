from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from memory_anchor.config import UNKNOWN_ID
from memory_anchor.face.types import Profile


class StateKind(str, Enum):
    IDLE = "idle"
    SCANNING = "scanning"
    RECOGNIZED = "recognized"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class RecognitionState:
    """Externally visible scan state.

    Equality doubles as the debounce key: `Scanning` (no face), `Unknown` and each
    `Recognized(id)` are distinct effective identities.
    """

    kind: StateKind
    person_id: Optional[str] = None

    @classmethod
    def idle(cls) -> "RecognitionState":
        return cls(StateKind.IDLE)

    @classmethod
    def scanning(cls) -> "RecognitionState":
        return cls(StateKind.SCANNING)

    @classmethod
    def recognized(cls, person_id: str) -> "RecognitionState":
        return cls(StateKind.RECOGNIZED, str(person_id))

    @classmethod
    def unknown(cls) -> "RecognitionState":
        return cls(StateKind.UNKNOWN)

    @property
    def is_active(self) -> bool:
        return self.kind != StateKind.IDLE

    def __str__(self) -> str:
        if self.kind == StateKind.RECOGNIZED:
            return f"Recognized({self.person_id})"
        return self.kind.value.capitalize()


# 画面中有人脸但不在注册表中时展示的资料
UNKNOWN_VISITOR = Profile(
    id=UNKNOWN_ID,
    name="Unknown Visitor",
    relation="Not in database",
    last_visit="First visit",
    conversation_summary="This person is not yet registered in the system.",
    current_update="Consider adding their profile for future recognition.",
    avatar="❓",
)
