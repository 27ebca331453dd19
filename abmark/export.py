from __future__ import annotations

import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Optional, Sequence

from .config import ConfigError
from .timeline import UnifiedBookmark

OUTPUT_SUFFIXES = {
    "xml": ".bookmarks.xml",
    "txt": ".bookmarks.txt",
}


def format_timestamp(seconds: int) -> str:
    seconds = max(0, int(seconds))
    hours, rem = divmod(seconds, 3600)
    minutes, secs = divmod(rem, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def output_path_for(output_dir: Path, book_id: str, output_format: str) -> Path:
    suffix = OUTPUT_SUFFIXES.get(output_format)
    if suffix is None:
        raise ConfigError(f"Unknown output format: {output_format!r}")
    return output_dir / f"{book_id}{suffix}"


def render_xml(
    bookmarks: Sequence[UnifiedBookmark], book_title: Optional[str] = None
) -> str:
    root = ET.Element("bookmarks")
    if book_title:
        root.set("book", book_title)
    for mark in bookmarks:
        node = ET.SubElement(
            root, "bookmark", chapter="true" if mark.is_chapter_mark else "false"
        )
        ET.SubElement(node, "title").text = mark.title
        ET.SubElement(node, "description").text = mark.description
        ET.SubElement(node, "fileName").text = mark.file_name
        ET.SubElement(node, "filePosition").text = str(mark.file_position)
        if mark.date_created:
            ET.SubElement(node, "dateCreated").text = mark.date_created
    ET.indent(root, space="  ")
    body = ET.tostring(root, encoding="unicode")
    return '<?xml version="1.0" encoding="UTF-8"?>\n' + body + "\n"


def _one_line(text: str) -> str:
    return " ".join(text.replace("\t", " ").split())


def render_text(bookmarks: Sequence[UnifiedBookmark]) -> str:
    lines = [
        "\t".join(
            (
                format_timestamp(mark.file_position),
                mark.file_name,
                _one_line(mark.title),
                _one_line(mark.description),
            )
        )
        for mark in bookmarks
    ]
    return "".join(line + "\n" for line in lines)


def render_bookmarks(
    bookmarks: Sequence[UnifiedBookmark],
    output_format: str,
    book_title: Optional[str] = None,
) -> str:
    if output_format == "xml":
        return render_xml(bookmarks, book_title)
    if output_format == "txt":
        return render_text(bookmarks)
    raise ConfigError(f"Unknown output format: {output_format!r}")


def write_bookmarks(
    bookmarks: Sequence[UnifiedBookmark],
    path: Path,
    output_format: str,
    book_title: Optional[str] = None,
) -> Path:
    content = render_bookmarks(bookmarks, output_format, book_title)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(content, encoding="utf-8")
    tmp.replace(path)
    return path
