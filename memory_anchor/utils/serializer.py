from __future__ import annotations

import json

from typing import Any, Dict, Iterable, List

from memory_anchor.config import SCHEMA_VERSION
from memory_anchor.errors import StorageCorrupt
from memory_anchor.face.types import EnrolledFace, Profile


def serialize_face(face: EnrolledFace) -> Dict[str, Any]:
    """Serialize an EnrolledFace into a JSON-safe dict.

    The embedding is written as a plain list of numbers (not a packed blob) so the
    store stays readable and diffable.
    """
    return {
        "id": face.id,
        "profile": face.profile.to_dict(),
        "embedding": [float(x) for x in face.embedding],
        "image_ref": str(face.image_ref or ""),
    }


def deserialize_face(data: Dict[str, Any]) -> EnrolledFace:
    if not isinstance(data, dict):
        raise StorageCorrupt(f"record is not an object: {type(data).__name__}")
    try:
        profile_data = dict(data.get("profile") or {})
        profile_data.setdefault("id", data["id"])
        profile = Profile.from_dict(profile_data)
        if str(data["id"]) != profile.id:
            raise StorageCorrupt(f"record id {data['id']!r} != profile id {profile.id!r}")
        if not profile.id:
            raise StorageCorrupt("record without id")
        emb = data["embedding"]
        if not isinstance(emb, list):
            raise StorageCorrupt(f"embedding of {profile.id!r} is not a list")
        return EnrolledFace(profile=profile, embedding=emb, image_ref=str(data.get("image_ref") or ""))
    except StorageCorrupt:
        raise
    except (KeyError, TypeError, ValueError, OverflowError) as e:
        raise StorageCorrupt(f"invalid face record: {e}") from e


def _migrate_legacy_record(data: Dict[str, Any]) -> Dict[str, Any]:
    """Legacy browser format: {id, personData, descriptor, imageUrl}."""
    if not isinstance(data, dict):
        raise StorageCorrupt(f"legacy record is not an object: {type(data).__name__}")
    return {
        "id": data.get("id"),
        "profile": data.get("personData") or {},
        "embedding": data.get("descriptor"),
        "image_ref": data.get("imageUrl") or "",
    }


def encode_registry(faces: Iterable[EnrolledFace]) -> str:
    doc = {
        "schema_version": SCHEMA_VERSION,
        "faces": [serialize_face(f) for f in faces],
    }
    return json.dumps(doc, ensure_ascii=False)


def decode_registry(raw: str) -> List[EnrolledFace]:
    """Parse a stored registry document. Raises StorageCorrupt on anything unexpected.

    Duplicate ids keep the last record, matching insert-or-replace semantics.
    """
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise StorageCorrupt(f"registry is not valid JSON: {e}") from e

    # v1 format
    if isinstance(data, dict) and data.get("schema_version") == SCHEMA_VERSION:
        records = data.get("faces")
        if not isinstance(records, list):
            raise StorageCorrupt("'faces' is not a list")
    # Backward compatibility: the browser app stored a bare list under the same key
    elif isinstance(data, list):
        records = [_migrate_legacy_record(r) for r in data]
    elif isinstance(data, dict):
        raise StorageCorrupt(f"unsupported schema_version: {data.get('schema_version')!r}")
    else:
        raise StorageCorrupt(f"unexpected registry document: {type(data).__name__}")

    by_id: Dict[str, EnrolledFace] = {}
    for rec in records:
        face = deserialize_face(rec)
        by_id.pop(face.id, None)
        by_id[face.id] = face
    return list(by_id.values())
