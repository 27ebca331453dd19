from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .config import (
    TITLE_FORMAT_MIXED,
    TITLE_FORMAT_SUBTITLE,
    TITLE_FORMAT_TITLE,
    ConfigError,
)

MIN_CHAPTER_MS = 3000


class ChapterNode(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    title: str = ""
    length_ms: int = Field(default=0, ge=0)
    start_offset_ms: int = Field(default=0, ge=0)
    chapters: Tuple["ChapterNode", ...] = ()

    @field_validator("title", mode="before")
    @classmethod
    def _coerce_title(cls, value):
        if value is None:
            return ""
        return str(value).strip()

    @field_validator("chapters", mode="before")
    @classmethod
    def _coerce_children(cls, value):
        if value is None:
            return ()
        return value


ChapterNode.model_rebuild()


@dataclass(frozen=True)
class FlattenedChapter:
    title: str
    subtitle: str
    length_ms: int
    start_offset_ms: int


@dataclass(frozen=True)
class _ShortClip:
    title: str
    length_ms: int
    start_offset_ms: int


def compose_title(
    hierarchy: Sequence[str], title_format: str, separator: str
) -> Tuple[str, str]:
    """Split a chapter's title path into the displayed title and subtitle."""
    path = list(hierarchy)
    if not path:
        return "", ""
    if title_format == TITLE_FORMAT_TITLE:
        return path[0], separator.join(path[1:])
    if title_format == TITLE_FORMAT_SUBTITLE:
        return path[-1], separator.join(list(reversed(path))[1:])
    if title_format == TITLE_FORMAT_MIXED:
        return path[-1], separator.join(path[:-1])
    raise ConfigError(f"Unknown title format: {title_format!r}")


def _flatten_level(
    nodes: Sequence[ChapterNode],
    hierarchy: List[str],
    pending: Optional[_ShortClip],
    title_format: str,
    separator: str,
) -> Tuple[List[FlattenedChapter], Optional[_ShortClip]]:
    rows: List[FlattenedChapter] = []
    for node in nodes:
        path = hierarchy + [node.title]
        title, subtitle = compose_title(path, title_format, separator)
        length_ms = node.length_ms
        start_offset_ms = node.start_offset_ms
        if pending is not None:
            title = f"{pending.title}{separator}{title}"
            length_ms += pending.length_ms
            start_offset_ms = pending.start_offset_ms
            pending = None
        if length_ms < MIN_CHAPTER_MS:
            pending = _ShortClip(title, length_ms, start_offset_ms)
        else:
            rows.append(
                FlattenedChapter(
                    title=title,
                    subtitle=subtitle,
                    length_ms=length_ms,
                    start_offset_ms=start_offset_ms,
                )
            )
        if node.chapters:
            child_rows, pending = _flatten_level(
                node.chapters, path, pending, title_format, separator
            )
            rows.extend(child_rows)
    return rows, pending


def flatten_chapters(
    nodes: Sequence[ChapterNode],
    title_format: str = TITLE_FORMAT_MIXED,
    separator: str = " | ",
) -> List[FlattenedChapter]:
    """Flatten a chapter tree into playable segments in pre-order.

    Segments shorter than ``MIN_CHAPTER_MS`` are folded into the next
    segment (title prefixed, duration added). A short segment with nothing
    after it is dropped.
    """
    # Validate up front so an empty tree still rejects a bad format.
    compose_title(["_"], title_format, separator)
    rows, _ = _flatten_level(list(nodes), [], None, title_format, separator)
    return rows


def count_nodes(nodes: Sequence[ChapterNode]) -> int:
    return sum(1 + count_nodes(node.chapters) for node in nodes)
