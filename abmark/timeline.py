from __future__ import annotations

from dataclasses import dataclass, replace
from typing import List, Optional, Sequence

from .annotations import AnnotationRecord
from .chapters import FlattenedChapter
from .files import AudioFile


@dataclass(frozen=True)
class UnifiedBookmark:
    is_chapter_mark: bool
    title: str
    description: str
    file_name: str
    file_position: int
    date_created: Optional[str] = None


def _seconds(offset_ms: int, trim_offset_ms: int) -> int:
    return (offset_ms - trim_offset_ms) // 1000


def _chapter_marks(
    chapters: Sequence[FlattenedChapter],
    audio_files: Sequence[AudioFile],
    is_monolithic: bool,
    trim_offset_ms: int,
) -> List[UnifiedBookmark]:
    if is_monolithic:
        monolithic = [item for item in audio_files if item.index == 0]
        names = [monolithic[0].name if monolithic else ""] * len(chapters)
    else:
        chapter_files = [item for item in audio_files if item.index >= 1]
        names = [item.name for item in chapter_files[: len(chapters)]]
        names += [""] * (len(chapters) - len(names))
    return [
        UnifiedBookmark(
            is_chapter_mark=True,
            title=chapter.title,
            description=chapter.subtitle,
            file_name=name,
            file_position=max(0, _seconds(chapter.start_offset_ms, trim_offset_ms)),
        )
        for chapter, name in zip(chapters, names)
    ]


def _annotation_marks(
    annotations: Sequence[AnnotationRecord], trim_offset_ms: int
) -> List[UnifiedBookmark]:
    # Never 0, so an annotation cannot sit on a chapter boundary.
    return [
        UnifiedBookmark(
            is_chapter_mark=False,
            title=record.display_title,
            description=record.text,
            file_name="",
            file_position=max(1, _seconds(record.start_ms, trim_offset_ms)),
            date_created=record.created_at,
        )
        for record in annotations
    ]


def _rebase(
    marks: Sequence[UnifiedBookmark], is_monolithic: bool
) -> List[UnifiedBookmark]:
    rebased: List[UnifiedBookmark] = []
    anchor: Optional[UnifiedBookmark] = None
    for mark in marks:
        if mark.is_chapter_mark:
            anchor = mark
            if is_monolithic:
                rebased.append(mark)
            continue
        if anchor is None:
            continue
        offset = 0 if is_monolithic else anchor.file_position
        rebased.append(
            replace(
                mark,
                file_name=anchor.file_name,
                file_position=mark.file_position - offset,
            )
        )
    return rebased


def build_timeline(
    chapters: Sequence[FlattenedChapter],
    audio_files: Sequence[AudioFile],
    annotations: Sequence[AnnotationRecord],
    is_monolithic: bool,
    trim_offset_ms: int = 0,
) -> List[UnifiedBookmark]:
    """Merge chapter marks and user annotations into one ordered list.

    Positions are whole seconds after ``trim_offset_ms``. When annotations
    are present they are re-based onto the most recent chapter mark: in a
    chapterized book they become relative to that chapter's file and the
    chapter marks themselves are left out; in a monolithic book chapter
    marks stay and positions are kept as they are. Annotations before the
    first chapter mark have no file and are dropped.
    """
    marks = _chapter_marks(chapters, audio_files, is_monolithic, trim_offset_ms)
    notes = _annotation_marks(annotations, trim_offset_ms)
    if not notes:
        return sorted(marks, key=lambda mark: mark.file_position)
    combined = sorted(marks + notes, key=lambda mark: mark.file_position)
    return _rebase(combined, is_monolithic)
