from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple, Union

from . import export as export_util
from .annotations import dedupe_annotations
from .chapters import FlattenedChapter, count_nodes, flatten_chapters
from .config import ConfigError, ConvertConfig
from .files import AudioFile, BookFiles, resolve_audio_files
from .library import BookMetadata, LocationIndex, load_annotations, load_book_metadata
from .timeline import UnifiedBookmark, build_timeline

STATUS_WRITTEN = "written"
STATUS_SKIPPED = "skipped"
STATUS_FAILED = "failed"

SKIP_NOT_INDEXED = "not in library index"
SKIP_INCOMPLETE = "missing metadata or audio files"
SKIP_OUTPUT_EXISTS = "output already exists"


@dataclass(frozen=True)
class BookSkip:
    reason: str


@dataclass(frozen=True)
class BookData:
    files: BookFiles
    chapters: Tuple[FlattenedChapter, ...]
    is_monolithic: bool
    trim_offset_ms: int
    title: Optional[str] = None
    node_count: int = 0

    @property
    def audio_files(self) -> Tuple[AudioFile, ...]:
        return self.files.audio_files


@dataclass
class BookResult:
    book_id: str
    status: str
    reason: Optional[str] = None
    output_path: Optional[Path] = None
    bookmarks: List[UnifiedBookmark] = field(default_factory=list)


def trim_offset_for(metadata: BookMetadata, config: ConvertConfig) -> int:
    if not config.trim_intro:
        return 0
    if config.intro_ms is not None:
        return config.intro_ms
    return metadata.brand_intro_ms


def prepare_book(
    files: BookFiles, metadata: BookMetadata, config: ConvertConfig
) -> Union[BookData, BookSkip]:
    has_whole_book = bool(files.monolithic_files)
    chapter_files = files.chapter_files
    is_monolithic = (config.prefer_monolithic and has_whole_book) or not chapter_files
    if is_monolithic and len(files.monolithic_files) > 1:
        return BookSkip(
            f"{len(files.monolithic_files)} whole-book files, expected one"
        )
    chapters = flatten_chapters(
        metadata.chapters, config.title_format, config.separator
    )
    if not is_monolithic and len(chapter_files) != len(chapters):
        return BookSkip(
            f"{len(chapter_files)} chapter files but {len(chapters)} chapters"
        )
    return BookData(
        files=files,
        chapters=tuple(chapters),
        is_monolithic=is_monolithic,
        trim_offset_ms=trim_offset_for(metadata, config),
        title=metadata.title,
        node_count=count_nodes(metadata.chapters),
    )


def load_book(
    book_id: str, location_index: LocationIndex, config: ConvertConfig
) -> Union[BookData, BookSkip]:
    entries = location_index.get(book_id)
    if entries is None:
        return BookSkip(SKIP_NOT_INDEXED)
    files = resolve_audio_files(entries)
    if files is None:
        return BookSkip(SKIP_INCOMPLETE)
    metadata = load_book_metadata(files.metadata_path)
    return prepare_book(files, metadata, config)


def book_bookmarks(book: BookData) -> List[UnifiedBookmark]:
    annotations = dedupe_annotations(load_annotations(book.files.annotations_path))
    return build_timeline(
        book.chapters,
        book.audio_files,
        annotations,
        book.is_monolithic,
        book.trim_offset_ms,
    )


def convert_book(
    book_id: str,
    location_index: LocationIndex,
    config: ConvertConfig,
    output_dir: Path,
) -> BookResult:
    output_path = export_util.output_path_for(output_dir, book_id, config.output_format)
    if config.skip_existing and output_path.exists():
        return BookResult(book_id, STATUS_SKIPPED, SKIP_OUTPUT_EXISTS, output_path)
    try:
        book = load_book(book_id, location_index, config)
        if isinstance(book, BookSkip):
            return BookResult(book_id, STATUS_SKIPPED, book.reason)
        bookmarks = book_bookmarks(book)
        export_util.write_bookmarks(
            bookmarks, output_path, config.output_format, book_title=book.title
        )
    except ConfigError:
        raise
    except (OSError, ValueError) as exc:
        return BookResult(book_id, STATUS_FAILED, str(exc))
    return BookResult(book_id, STATUS_WRITTEN, None, output_path, bookmarks)


def convert_books(
    book_ids: Sequence[str],
    location_index: LocationIndex,
    config: ConvertConfig,
    output_dir: Path,
    jobs: int = 1,
    on_result: Optional[Callable[[BookResult], None]] = None,
) -> List[BookResult]:
    """Convert books independently; results come back in input order."""
    ids = list(book_ids)
    if not ids:
        return []
    results: List[Optional[BookResult]] = [None] * len(ids)
    effective_jobs = max(1, min(int(jobs or 1), len(ids)))

    def _worker(item: Tuple[int, str]) -> Tuple[int, BookResult]:
        idx, book_id = item
        return idx, convert_book(book_id, location_index, config, output_dir)

    if effective_jobs == 1:
        for item in enumerate(ids):
            idx, result = _worker(item)
            results[idx] = result
            if on_result:
                on_result(result)
        return [result for result in results if result is not None]

    with ThreadPoolExecutor(max_workers=effective_jobs) as executor:
        futures = [executor.submit(_worker, item) for item in enumerate(ids)]
        for future in futures:
            idx, result = future.result()
            results[idx] = result
            if on_result:
                on_result(result)
    return [result for result in results if result is not None]
