from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Mapping, Optional

import numpy as np


def as_embedding(values) -> np.ndarray:
    """Copy `values` into a read-only 1D float32 vector."""
    arr = np.array(values, dtype=np.float32).reshape(-1)
    if arr.size == 0:
        raise ValueError("empty embedding")
    if not np.all(np.isfinite(arr)):
        raise ValueError("embedding contains NaN/Inf")
    arr.flags.writeable = False
    return arr


@dataclass(frozen=True)
class Profile:
    id: str
    name: str = ""
    relation: str = ""
    age: Optional[int] = None
    last_visit: str = ""
    conversation_summary: str = ""
    current_update: str = ""
    avatar: str = ""

    def with_id(self, person_id: str) -> "Profile":
        return replace(self, id=str(person_id))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "relation": self.relation,
            "age": self.age,
            "lastVisit": self.last_visit,
            "conversationSummary": self.conversation_summary,
            "currentUpdate": self.current_update,
            "avatar": self.avatar,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Profile":
        age = data.get("age")
        return cls(
            id=str(data["id"]),
            name=str(data.get("name") or ""),
            relation=str(data.get("relation") or ""),
            age=int(age) if age is not None else None,
            last_visit=str(data.get("lastVisit") or ""),
            conversation_summary=str(data.get("conversationSummary") or ""),
            current_update=str(data.get("currentUpdate") or ""),
            avatar=str(data.get("avatar") or ""),
        )


@dataclass(frozen=True)
class EnrolledFace:
    """One enrolled person: embedding + profile + opaque image reference."""

    profile: Profile
    embedding: np.ndarray = field(compare=False)
    image_ref: str = ""

    def __post_init__(self) -> None:
        # frozen dataclass: go through object.__setattr__ to freeze the vector too
        object.__setattr__(self, "embedding", as_embedding(self.embedding))

    @property
    def id(self) -> str:
        return self.profile.id
