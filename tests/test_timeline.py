from pathlib import Path

from abmark import timeline as timeline_util
from abmark.annotations import AnnotationRecord
from abmark.chapters import FlattenedChapter
from abmark.files import AudioFile


def _chapter(title: str, start_ms: int, length_ms: int = 60000) -> FlattenedChapter:
    return FlattenedChapter(
        title=title, subtitle="", length_ms=length_ms, start_offset_ms=start_ms
    )


def _note(start_ms: int, title: str = "note") -> AnnotationRecord:
    return AnnotationRecord(kind="note", start_ms=start_ms, title=title)


CHAPTERIZED_FILES = [
    AudioFile(Path("/lib/Book - 01.mp3"), 1),
    AudioFile(Path("/lib/Book - 02.mp3"), 2),
]
MONOLITHIC_FILES = [AudioFile(Path("/lib/Book.m4b"), 0)]


def test_chapter_marks_only_without_annotations() -> None:
    chapters = [_chapter("One", 0), _chapter("Two", 120000)]
    marks = timeline_util.build_timeline(chapters, CHAPTERIZED_FILES, [], False, 0)
    assert [(m.title, m.file_name, m.file_position) for m in marks] == [
        ("One", "Book - 01.mp3", 0),
        ("Two", "Book - 02.mp3", 120),
    ]
    assert all(mark.is_chapter_mark for mark in marks)


def test_chapterized_annotations_rebased_to_their_file() -> None:
    chapters = [_chapter("One", 0), _chapter("Two", 120000)]
    marks = timeline_util.build_timeline(
        chapters, CHAPTERIZED_FILES, [_note(130000)], False, 0
    )
    assert len(marks) == 1
    assert marks[0].is_chapter_mark is False
    assert marks[0].file_name == "Book - 02.mp3"
    assert marks[0].file_position == 10


def test_monolithic_keeps_chapter_marks_and_absolute_positions() -> None:
    chapters = [_chapter("One", 0), _chapter("Two", 120000)]
    marks = timeline_util.build_timeline(
        chapters, MONOLITHIC_FILES, [_note(45000)], True, 0
    )
    assert [(m.is_chapter_mark, m.file_name, m.file_position) for m in marks] == [
        (True, "Book.m4b", 0),
        (False, "Book.m4b", 45),
        (True, "Book.m4b", 120),
    ]


def test_annotation_before_first_chapter_is_dropped() -> None:
    chapters = [_chapter("One", 10000)]
    marks = timeline_util.build_timeline(
        chapters, MONOLITHIC_FILES, [_note(5000, "early")], True, 0
    )
    assert [m.title for m in marks] == ["One"]


def test_trim_offset_clamps_positions() -> None:
    chapters = [_chapter("Intro", 0), _chapter("One", 62000)]
    marks = timeline_util.build_timeline(
        chapters, MONOLITHIC_FILES, [_note(2500)], True, 2000
    )
    assert [(m.title, m.file_position) for m in marks] == [
        ("Intro", 0),
        ("note", 1),
        ("One", 60),
    ]


def test_annotation_on_chapter_boundary_follows_the_chapter() -> None:
    chapters = [_chapter("One", 0), _chapter("Two", 120000)]
    marks = timeline_util.build_timeline(
        chapters, CHAPTERIZED_FILES, [_note(120400)], False, 0
    )
    assert [(m.file_name, m.file_position) for m in marks] == [("Book - 02.mp3", 0)]


def test_annotation_keeps_creation_date_and_text() -> None:
    chapters = [_chapter("One", 0)]
    record = AnnotationRecord(
        kind="clip",
        start_ms=30000,
        title="Quote",
        text="Some words",
        created_at="2021-04-04 17:09:54.0",
    )
    marks = timeline_util.build_timeline(chapters, MONOLITHIC_FILES, [record], True)
    assert marks[1].description == "Some words"
    assert marks[1].date_created == "2021-04-04 17:09:54.0"
