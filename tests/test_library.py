import json
from pathlib import Path

import pytest

from abmark import library as library_util
from abmark.files import (
    FILE_TYPE_ANNOTATIONS,
    FILE_TYPE_AUDIO,
    FILE_TYPE_METADATA,
    FILE_TYPE_OTHER,
)


def test_classify_file() -> None:
    assert library_util.classify_file(Path("a [X].metadata.json")) == FILE_TYPE_METADATA
    assert library_util.classify_file(Path("a [X].Annotations.JSON")) == FILE_TYPE_ANNOTATIONS
    assert library_util.classify_file(Path("a [X] - 01.MP3")) == FILE_TYPE_AUDIO
    assert library_util.classify_file(Path("cover.jpg")) == FILE_TYPE_OTHER
    assert library_util.classify_file(Path("notes.json")) == FILE_TYPE_OTHER


def test_book_id_from_name_or_folder(tmp_path: Path) -> None:
    assert library_util.book_id_for(Path("Title [B01] [B02].m4b")) == "B02"
    nested = tmp_path / "Author" / "Title [B03]" / "disc" / "01.mp3"
    assert library_util.book_id_for(nested, tmp_path) == "B03"
    assert library_util.book_id_for(tmp_path / "loose.mp3", tmp_path) is None


def test_build_location_index_groups_files(tmp_path: Path) -> None:
    book_dir = tmp_path / "Title [B01]"
    book_dir.mkdir()
    (book_dir / "Title [B01].metadata.json").write_text("{}", encoding="utf-8")
    (book_dir / "Title [B01] - 02.mp3").write_bytes(b"")
    (book_dir / "Title [B01] - 01.mp3").write_bytes(b"")
    (book_dir / ".hidden").write_bytes(b"")
    (tmp_path / "Other [B02].m4b").write_bytes(b"")
    (tmp_path / "stray.mp3").write_bytes(b"")

    index = library_util.build_location_index(tmp_path)
    assert sorted(index) == ["B01", "B02"]
    assert [(path.name, kind) for path, kind in index["B01"]] == [
        ("Title [B01] - 01.mp3", FILE_TYPE_AUDIO),
        ("Title [B01] - 02.mp3", FILE_TYPE_AUDIO),
        ("Title [B01].metadata.json", FILE_TYPE_METADATA),
    ]


def test_build_location_index_missing_root(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        library_util.build_location_index(tmp_path / "missing")


def test_parse_book_metadata_reads_content_metadata() -> None:
    payload = {
        "content_metadata": {
            "chapter_info": {
                "brandIntroDurationMs": 2043,
                "chapters": [
                    {
                        "title": "Part One",
                        "length_ms": 1000,
                        "start_offset_ms": 0,
                        "start_offset_sec": 0,
                        "chapters": [
                            {"title": "Chapter 1", "length_ms": 5000, "start_offset_ms": 1000}
                        ],
                    }
                ],
            },
            "content_reference": {"title": "The Book"},
        }
    }
    metadata = library_util.parse_book_metadata(payload)
    assert metadata.title == "The Book"
    assert metadata.brand_intro_ms == 2043
    assert metadata.chapters[0].title == "Part One"
    assert metadata.chapters[0].chapters[0].length_ms == 5000


def test_parse_book_metadata_accepts_plain_chapter_list() -> None:
    metadata = library_util.parse_book_metadata(
        {"title": "Plain", "chapters": [{"title": "One", "length_ms": 4000}]}
    )
    assert metadata.title == "Plain"
    assert metadata.brand_intro_ms == 0
    assert metadata.chapters[0].start_offset_ms == 0


def test_parse_book_metadata_rejects_bad_chapters() -> None:
    with pytest.raises(ValueError):
        library_util.parse_book_metadata(
            {"chapters": [{"title": "One", "length_ms": -5}]}, source="bad.json"
        )
    with pytest.raises(ValueError):
        library_util.parse_book_metadata(["not", "an", "object"])


def test_load_json_reports_path(tmp_path: Path) -> None:
    path = tmp_path / "broken.metadata.json"
    path.write_text("{", encoding="utf-8")
    with pytest.raises(ValueError, match="broken.metadata.json"):
        library_util.load_json(path)


def test_load_annotations_missing_file_is_empty(tmp_path: Path) -> None:
    assert library_util.load_annotations(None) == []
    assert library_util.load_annotations(tmp_path / "none.annotations.json") == []
    path = tmp_path / "b.annotations.json"
    path.write_text(
        json.dumps({"records": [{"type": "audible.bookmark", "startPosition": "9000"}]}),
        encoding="utf-8",
    )
    assert [record.start_ms for record in library_util.load_annotations(path)] == [9000]
