from __future__ import annotations

import json
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from pydantic import TypeAdapter, ValidationError

from .annotations import AnnotationRecord, parse_annotation_records
from .chapters import ChapterNode
from .files import (
    FILE_TYPE_ANNOTATIONS,
    FILE_TYPE_AUDIO,
    FILE_TYPE_METADATA,
    FILE_TYPE_OTHER,
)

AUDIO_EXTS = {".m4b", ".m4a", ".mp3", ".aax", ".aaxc", ".ogg", ".opus", ".flac", ".wav"}
METADATA_SUFFIX = ".metadata.json"
ANNOTATIONS_SUFFIX = ".annotations.json"

_BOOK_ID_RE = re.compile(r"\[([^\[\]]+)\]")
_CHAPTER_LIST = TypeAdapter(List[ChapterNode])

LocationIndex = Dict[str, List[Tuple[Path, str]]]


@dataclass(frozen=True)
class BookMetadata:
    title: Optional[str]
    chapters: Tuple[ChapterNode, ...]
    brand_intro_ms: int = 0


def classify_file(path: Path) -> str:
    name = path.name.lower()
    if name.endswith(METADATA_SUFFIX):
        return FILE_TYPE_METADATA
    if name.endswith(ANNOTATIONS_SUFFIX):
        return FILE_TYPE_ANNOTATIONS
    if path.suffix.lower() in AUDIO_EXTS:
        return FILE_TYPE_AUDIO
    return FILE_TYPE_OTHER


def _book_id_from_name(name: str) -> Optional[str]:
    matches = _BOOK_ID_RE.findall(name)
    if not matches:
        return None
    value = matches[-1].strip()
    return value or None


def book_id_for(path: Path, root: Optional[Path] = None) -> Optional[str]:
    """Return the ``[ID]`` tag of a file, falling back to its folders."""
    book_id = _book_id_from_name(path.name)
    if book_id:
        return book_id
    for parent in path.parents:
        if root is not None and parent == root:
            break
        book_id = _book_id_from_name(parent.name)
        if book_id:
            return book_id
    return None


def build_location_index(root: Path) -> LocationIndex:
    if not root.is_dir():
        raise FileNotFoundError(f"Library folder not found: {root}")
    index: LocationIndex = {}
    for path in sorted(root.rglob("*")):
        if not path.is_file() or path.name.startswith("."):
            continue
        book_id = book_id_for(path, root)
        if not book_id:
            continue
        index.setdefault(book_id, []).append((path, classify_file(path)))
    return index


def load_json(path: Path) -> object:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in {path}: {exc}") from exc


def _chapter_info(payload: dict) -> dict:
    content = payload.get("content_metadata")
    if isinstance(content, dict) and isinstance(content.get("chapter_info"), dict):
        return content["chapter_info"]
    if isinstance(payload.get("chapter_info"), dict):
        return payload["chapter_info"]
    return payload


def _book_title(payload: dict) -> Optional[str]:
    content = payload.get("content_metadata")
    if isinstance(content, dict):
        product = content.get("content_reference") or {}
        if isinstance(product, dict) and product.get("title"):
            return str(product["title"]).strip() or None
    title = payload.get("title")
    if isinstance(title, str) and title.strip():
        return title.strip()
    return None


def parse_book_metadata(payload: object, source: str = "metadata") -> BookMetadata:
    if not isinstance(payload, dict):
        raise ValueError(f"Book metadata must be a JSON object: {source}")
    info = _chapter_info(payload)
    raw_chapters = info.get("chapters") or []
    try:
        chapters = _CHAPTER_LIST.validate_python(raw_chapters)
    except ValidationError as exc:
        raise ValueError(f"Invalid chapter list in {source}: {exc}") from exc
    intro = info.get("brandIntroDurationMs")
    brand_intro_ms = intro if isinstance(intro, int) and intro > 0 else 0
    return BookMetadata(
        title=_book_title(payload),
        chapters=tuple(chapters),
        brand_intro_ms=brand_intro_ms,
    )


def load_book_metadata(path: Path) -> BookMetadata:
    return parse_book_metadata(load_json(path), source=str(path))


def load_annotations(path: Optional[Path]) -> List[AnnotationRecord]:
    if path is None or not path.exists():
        return []
    return parse_annotation_records(load_json(path))
