from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Optional

from rich.progress import (
    BarColumn,
    Progress,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
    TimeRemainingColumn,
)

from . import book as book_util
from . import export as export_util
from . import library as library_util
from .config import (
    OUTPUT_FORMATS,
    TITLE_FORMATS,
    ConfigError,
    ConvertConfig,
    resolve_config,
)
from .files import resolve_audio_files


def _config_from_args(args: argparse.Namespace) -> ConvertConfig:
    overrides = {
        "title_format": getattr(args, "title_format", None),
        "separator": getattr(args, "separator", None),
        "trim_intro": getattr(args, "trim_intro", None),
        "intro_ms": getattr(args, "intro_ms", None),
        "prefer_monolithic": getattr(args, "prefer_monolithic", None) or None,
        "skip_existing": getattr(args, "skip_existing", None) or None,
        "output_format": getattr(args, "format", None),
    }
    config_path = Path(args.config) if getattr(args, "config", None) else None
    return resolve_config(config_path, overrides)


def _load_index(args: argparse.Namespace) -> Optional[library_util.LocationIndex]:
    try:
        return library_util.build_location_index(Path(args.library))
    except FileNotFoundError as exc:
        sys.stderr.write(f"{exc}\n")
        return None


def _convert(args: argparse.Namespace) -> int:
    try:
        config = _config_from_args(args)
    except ValueError as exc:
        sys.stderr.write(f"Config error: {exc}\n")
        return 2
    index = _load_index(args)
    if index is None:
        return 2
    book_ids = list(args.book_ids) or sorted(index)
    if not book_ids:
        sys.stderr.write("No books found in library.\n")
        return 0

    output_dir = Path(args.output)
    counts = {
        book_util.STATUS_WRITTEN: 0,
        book_util.STATUS_SKIPPED: 0,
        book_util.STATUS_FAILED: 0,
    }
    progress = Progress(
        TextColumn("{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        TimeElapsedColumn(),
        TimeRemainingColumn(),
        disable=args.quiet,
    )

    with progress:
        task = progress.add_task("Books", total=len(book_ids))

        def _report(result: book_util.BookResult) -> None:
            counts[result.status] = counts.get(result.status, 0) + 1
            if result.status == book_util.STATUS_SKIPPED:
                progress.console.print(
                    f"Skipped {result.book_id}: {result.reason}",
                    markup=False,
                    highlight=False,
                )
            elif result.status == book_util.STATUS_FAILED:
                progress.console.print(
                    f"Failed {result.book_id}: {result.reason}",
                    markup=False,
                    highlight=False,
                )
            progress.advance(task, 1)

        try:
            book_util.convert_books(
                book_ids,
                index,
                config,
                output_dir,
                jobs=args.jobs,
                on_result=_report,
            )
        except ConfigError as exc:
            sys.stderr.write(f"Config error: {exc}\n")
            return 2

    sys.stderr.write(
        f"Wrote {counts[book_util.STATUS_WRITTEN]}, "
        f"skipped {counts[book_util.STATUS_SKIPPED]}, "
        f"failed {counts[book_util.STATUS_FAILED]}.\n"
    )
    return 1 if counts[book_util.STATUS_FAILED] else 0


def _list(args: argparse.Namespace) -> int:
    index = _load_index(args)
    if index is None:
        return 2
    for book_id in sorted(index):
        entries = index[book_id]
        files = resolve_audio_files(entries)
        if files is None:
            sys.stdout.write(f"{book_id}\t{len(entries)} files\tincomplete\n")
            continue
        layout = "chapterized" if files.chapter_files else "monolithic"
        sys.stdout.write(
            f"{book_id}\t{len(files.audio_files)} audio\t{layout}\n"
        )
        if files.duplicate_indices:
            dupes = ", ".join(str(idx) for idx in files.duplicate_indices)
            sys.stderr.write(f"{book_id}: duplicate file indices {dupes}\n")
    return 0


def _load_single_book(args: argparse.Namespace):
    try:
        config = _config_from_args(args)
    except ValueError as exc:
        sys.stderr.write(f"Config error: {exc}\n")
        return None, 2
    index = _load_index(args)
    if index is None:
        return None, 2
    try:
        book = book_util.load_book(args.book_id, index, config)
    except (OSError, ValueError) as exc:
        sys.stderr.write(f"{exc}\n")
        return None, 1
    if isinstance(book, book_util.BookSkip):
        sys.stderr.write(f"Skipped {args.book_id}: {book.reason}\n")
        return None, 1
    return book, 0


def _chapters(args: argparse.Namespace) -> int:
    book, code = _load_single_book(args)
    if book is None:
        return code
    for chapter in book.chapters:
        start = export_util.format_timestamp(chapter.start_offset_ms // 1000)
        line = f"{start}\t{chapter.length_ms}ms\t{chapter.title}"
        if chapter.subtitle:
            line += f"\t{chapter.subtitle}"
        sys.stdout.write(line + "\n")
    layout = "monolithic" if book.is_monolithic else "chapterized"
    sys.stderr.write(
        f"{len(book.chapters)} segments from {book.node_count} "
        f"chapters ({layout}).\n"
    )
    return 0


def _bookmarks(args: argparse.Namespace) -> int:
    book, code = _load_single_book(args)
    if book is None:
        return code
    try:
        bookmarks = book_util.book_bookmarks(book)
    except (OSError, ValueError) as exc:
        sys.stderr.write(f"{exc}\n")
        return 1
    config_format = args.format or "txt"
    try:
        content = export_util.render_bookmarks(bookmarks, config_format, book.title)
    except ConfigError as exc:
        sys.stderr.write(f"Config error: {exc}\n")
        return 2
    sys.stdout.write(content)
    return 0


def _add_library_arg(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--library",
        required=True,
        help="Folder containing audio, .metadata.json and .annotations.json files",
    )


def _add_title_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--config", help="JSON config file")
    parser.add_argument(
        "--title-format",
        help=f"How nested chapter titles are shown ({'|'.join(TITLE_FORMATS)})",
    )
    parser.add_argument("--separator", help="Separator for composed titles")
    parser.add_argument(
        "--trim-intro",
        dest="trim_intro",
        action="store_true",
        default=None,
        help="Audio had the publisher intro removed (default)",
    )
    parser.add_argument(
        "--no-trim-intro",
        dest="trim_intro",
        action="store_false",
        help="Audio still contains the publisher intro",
    )
    parser.add_argument(
        "--intro-ms",
        type=int,
        help="Intro length in ms (default: from book metadata)",
    )
    parser.add_argument(
        "--prefer-monolithic",
        action="store_true",
        help="Use the whole-book file when both layouts are present",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="abmark", description="Audiobook chapter and bookmark converter"
    )
    subparsers = parser.add_subparsers(dest="command")

    convert = subparsers.add_parser(
        "convert", help="Write bookmark files for books in a library"
    )
    _add_library_arg(convert)
    convert.add_argument("--output", required=True, help="Output folder")
    convert.add_argument(
        "book_ids", nargs="*", help="Book IDs to convert (default: all)"
    )
    _add_title_args(convert)
    convert.add_argument(
        "--skip-existing",
        action="store_true",
        help="Skip books whose bookmark file already exists",
    )
    convert.add_argument(
        "--format",
        choices=OUTPUT_FORMATS,
        help="Bookmark file format (default: xml)",
    )
    convert.add_argument(
        "--jobs", type=int, default=1, help="Books to convert in parallel"
    )
    convert.add_argument(
        "--quiet", action="store_true", help="Hide the progress bar"
    )
    convert.set_defaults(func=_convert)

    list_cmd = subparsers.add_parser("list", help="List books found in a library")
    _add_library_arg(list_cmd)
    list_cmd.set_defaults(func=_list)

    chapters = subparsers.add_parser(
        "chapters", help="Show the flattened chapters of one book"
    )
    _add_library_arg(chapters)
    chapters.add_argument("book_id")
    _add_title_args(chapters)
    chapters.set_defaults(func=_chapters)

    bookmarks = subparsers.add_parser(
        "bookmarks", help="Print the merged bookmarks of one book"
    )
    _add_library_arg(bookmarks)
    bookmarks.add_argument("book_id")
    _add_title_args(bookmarks)
    bookmarks.add_argument(
        "--format",
        choices=OUTPUT_FORMATS,
        help="Output format (default: txt)",
    )
    bookmarks.set_defaults(func=_bookmarks)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    return int(args.func(args))

