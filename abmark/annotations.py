from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

KIND_CLIP = "clip"
KIND_NOTE = "note"
KIND_BOOKMARK = "bookmark"

# Higher wins when several records mark the same moment.
KIND_RANK: Dict[str, int] = {
    KIND_CLIP: 3,
    KIND_NOTE: 2,
    KIND_BOOKMARK: 1,
}

_TYPE_ALIASES = {
    "audible.clip": KIND_CLIP,
    "audible.note": KIND_NOTE,
    "audible.bookmark": KIND_BOOKMARK,
    "clip": KIND_CLIP,
    "note": KIND_NOTE,
    "bookmark": KIND_BOOKMARK,
}

_DEFAULT_TITLES = {
    KIND_CLIP: "Clip",
    KIND_NOTE: "Note",
    KIND_BOOKMARK: "Bookmark",
}


@dataclass(frozen=True)
class AnnotationRecord:
    kind: str
    start_ms: int
    title: str = ""
    text: str = ""
    created_at: Optional[str] = None

    @property
    def display_title(self) -> str:
        if self.title:
            return self.title
        first_line = self.text.strip().split("\n", 1)[0].strip()
        return first_line or _DEFAULT_TITLES.get(self.kind, "Bookmark")


class _RawAnnotation(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    type: str = ""
    start_position: int = Field(alias="startPosition", ge=0)
    creation_time: Optional[str] = Field(default=None, alias="creationTime")
    title: Optional[str] = None
    text: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


def annotation_kind(raw_type: object) -> Optional[str]:
    if not isinstance(raw_type, str):
        return None
    return _TYPE_ALIASES.get(raw_type.strip().lower())


def _records_from_payload(payload: object) -> List[object]:
    if isinstance(payload, list):
        return payload
    if not isinstance(payload, dict):
        return []
    records = payload.get("records")
    if isinstance(records, list):
        return records
    inner = payload.get("payload")
    if isinstance(inner, dict) and isinstance(inner.get("records"), list):
        return inner["records"]
    return []


def _clean_text(value: object) -> str:
    if value is None:
        return ""
    return str(value).strip()


def parse_annotation_records(payload: object) -> List[AnnotationRecord]:
    """Read annotation records from a player export.

    Records whose type is not a clip, note or bookmark (for example the
    last-heard position) or that lack a usable start position are skipped.
    """
    records: List[AnnotationRecord] = []
    for entry in _records_from_payload(payload):
        if not isinstance(entry, dict):
            continue
        kind = annotation_kind(entry.get("type"))
        if kind is None:
            continue
        try:
            raw = _RawAnnotation.model_validate(entry)
        except ValidationError:
            continue
        metadata = raw.metadata
        title = _clean_text(metadata.get("title") or raw.title)
        text = _clean_text(metadata.get("note") or raw.text or metadata.get("text"))
        records.append(
            AnnotationRecord(
                kind=kind,
                start_ms=raw.start_position,
                title=title,
                text=text,
                created_at=_clean_text(raw.creation_time) or None,
            )
        )
    return records


def dedupe_annotations(records: Iterable[AnnotationRecord]) -> List[AnnotationRecord]:
    """Keep one record per start position, preferring clip, then note."""
    chosen: Dict[int, AnnotationRecord] = {}
    for record in records:
        rank = KIND_RANK.get(record.kind)
        if rank is None:
            continue
        current = chosen.get(record.start_ms)
        if current is None or rank > KIND_RANK[current.kind]:
            chosen[record.start_ms] = record
    return list(chosen.values())
