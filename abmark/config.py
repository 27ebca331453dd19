from __future__ import annotations

import json
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Mapping, Optional

TITLE_FORMAT_TITLE = "Title"
TITLE_FORMAT_SUBTITLE = "Subtitle"
TITLE_FORMAT_MIXED = "Mixed"
TITLE_FORMATS = (TITLE_FORMAT_TITLE, TITLE_FORMAT_SUBTITLE, TITLE_FORMAT_MIXED)

OUTPUT_FORMATS = ("xml", "txt")

DEFAULT_TITLE_FORMAT = TITLE_FORMAT_MIXED
DEFAULT_SEPARATOR = " | "
DEFAULT_OUTPUT_FORMAT = "xml"


class ConfigError(ValueError):
    """Raised for settings that would be wrong for every book in a run."""


@dataclass(frozen=True)
class ConvertConfig:
    title_format: str = DEFAULT_TITLE_FORMAT
    separator: str = DEFAULT_SEPARATOR
    trim_intro: bool = True
    intro_ms: Optional[int] = None
    prefer_monolithic: bool = False
    skip_existing: bool = False
    output_format: str = DEFAULT_OUTPUT_FORMAT


def _load_json(path: Path) -> dict:
    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"Config must be a JSON object: {path}")
    return data


def _coerce_intro_ms(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ConfigError(f"intro_ms must be a number of milliseconds: {value!r}")
    try:
        intro_ms = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(
            f"intro_ms must be a number of milliseconds: {value!r}"
        ) from exc
    if intro_ms < 0:
        raise ConfigError(f"intro_ms must not be negative: {intro_ms}")
    return intro_ms


def normalize_title_format(value: str) -> str:
    cleaned = str(value or "").strip()
    for name in TITLE_FORMATS:
        if cleaned.lower() == name.lower():
            return name
    raise ConfigError(
        f"Unknown title format: {value!r} (expected one of {', '.join(TITLE_FORMATS)})"
    )


def validate_config(config: ConvertConfig) -> ConvertConfig:
    title_format = normalize_title_format(config.title_format)
    output_format = str(config.output_format or "").strip().lower()
    if output_format not in OUTPUT_FORMATS:
        raise ConfigError(
            f"Unknown output format: {config.output_format!r} "
            f"(expected one of {', '.join(OUTPUT_FORMATS)})"
        )
    return replace(
        config,
        title_format=title_format,
        output_format=output_format,
        intro_ms=_coerce_intro_ms(config.intro_ms),
    )


def config_from_mapping(data: Mapping[str, Any]) -> ConvertConfig:
    known = {field.name for field in fields(ConvertConfig)}
    values = {key: data[key] for key in data if key in known}
    if "separator" in values:
        values["separator"] = str(values["separator"])
    for key in ("trim_intro", "prefer_monolithic", "skip_existing"):
        if key in values and not isinstance(values[key], bool):
            raise ConfigError(f"{key} must be true or false: {values[key]!r}")
    return ConvertConfig(**values)


def load_config(path: Path) -> ConvertConfig:
    return validate_config(config_from_mapping(_load_json(path)))


def resolve_config(
    path: Optional[Path] = None,
    overrides: Optional[Mapping[str, Any]] = None,
) -> ConvertConfig:
    data: dict[str, Any] = {}
    if path is not None:
        if not path.exists():
            raise ConfigError(f"Config file not found: {path}")
        data.update(_load_json(path))
    for key, value in (overrides or {}).items():
        if value is not None:
            data[key] = value
    return validate_config(config_from_mapping(data))
