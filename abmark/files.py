from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional, Tuple

FILE_TYPE_AUDIO = "audio"
FILE_TYPE_METADATA = "metadata"
FILE_TYPE_ANNOTATIONS = "annotations"
FILE_TYPE_OTHER = "other"

_NON_DIGIT_RE = re.compile(r"\D+")


@dataclass(frozen=True)
class AudioFile:
    path: Path
    index: int

    @property
    def name(self) -> str:
        return self.path.name


@dataclass(frozen=True)
class BookFiles:
    metadata_path: Path
    annotations_path: Optional[Path]
    audio_files: Tuple[AudioFile, ...]
    base_digits: str

    @property
    def monolithic_files(self) -> list[AudioFile]:
        return [item for item in self.audio_files if item.index == 0]

    @property
    def chapter_files(self) -> list[AudioFile]:
        return [item for item in self.audio_files if item.index >= 1]

    @property
    def duplicate_indices(self) -> list[int]:
        seen: set[int] = set()
        duplicates: list[int] = []
        for item in self.chapter_files:
            if item.index in seen and item.index not in duplicates:
                duplicates.append(item.index)
            seen.add(item.index)
        return duplicates


def file_stem(path: Path) -> str:
    """Return the file name without its extension(s) for digit inference.

    ``Book [B01].metadata.json`` and ``Book [B01].annotations.json`` both
    resolve to ``Book [B01]``; audio files only lose their last suffix.
    """
    name = path.name
    for suffix in (".metadata.json", ".annotations.json"):
        if name.lower().endswith(suffix):
            return name[: -len(suffix)]
    return path.stem


def resolve_digits(stem: str, base_digits: str = "", max_digits: int = 0) -> str:
    """Extract the chapter index digits from a file name.

    ``base_digits`` are the digits every file of the book shares (an ID or a
    release year). They are removed as a trailing match first, then as a
    leading one. With ``max_digits`` set, only the first ``max_digits``
    digits are kept; the rest belongs to a chapter title.
    """
    digits = _NON_DIGIT_RE.sub("", stem)
    if base_digits:
        if digits.endswith(base_digits):
            digits = digits[: -len(base_digits)]
        elif digits.startswith(base_digits):
            digits = digits[len(base_digits):]
    if max_digits > 0 and len(digits) > max_digits:
        digits = digits[:max_digits]
    return digits


def base_digits_for(metadata_path: Path) -> str:
    return resolve_digits(file_stem(metadata_path), "", 0)


def resolve_audio_files(
    files: Iterable[Tuple[Path, str]],
) -> Optional[BookFiles]:
    """Assign a chapter index to every audio file of one book.

    Returns ``None`` when the book has no metadata file or no audio, which
    callers treat as "not actionable" rather than an error.
    """
    metadata_path: Optional[Path] = None
    annotations_path: Optional[Path] = None
    audio_paths: list[Path] = []
    for path, file_type in files:
        path = Path(path)
        if file_type == FILE_TYPE_AUDIO:
            audio_paths.append(path)
        elif file_type == FILE_TYPE_METADATA and metadata_path is None:
            metadata_path = path
        elif file_type == FILE_TYPE_ANNOTATIONS and annotations_path is None:
            annotations_path = path
    if metadata_path is None or not audio_paths:
        return None

    base_digits = base_digits_for(metadata_path)
    max_digits = len(str(len(audio_paths)))
    audio_files = [
        AudioFile(path=path, index=_index_from_digits(
            resolve_digits(file_stem(path), base_digits, max_digits)
        ))
        for path in audio_paths
    ]
    audio_files.sort(key=lambda item: item.index)
    return BookFiles(
        metadata_path=metadata_path,
        annotations_path=annotations_path,
        audio_files=tuple(audio_files),
        base_digits=base_digits,
    )


def _index_from_digits(digits: str) -> int:
    if not digits:
        return 0
    return int(digits)
