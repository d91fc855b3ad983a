from __future__ import annotations

import tomllib
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Mapping

from .emphasis import DEFAULT_MAX_FULL_LENGTH
from .transform import (
    DEFAULT_EMPHASIS_TAG,
    DEFAULT_EXCLUSIONS,
    DEFAULT_PARSER,
    SUPPORTED_PARSERS,
    DocumentTransformer,
    ExclusionRules,
)

DEFAULT_SUFFIXES: tuple[str, ...] = (".xhtml", ".html", ".htm")
CONFIG_FILENAME = "bionic.toml"


class ConfigError(ValueError):
    pass


@dataclass(frozen=True, slots=True)
class ConversionOptions:
    suffixes: tuple[str, ...] = DEFAULT_SUFFIXES
    emphasis_tag: str = DEFAULT_EMPHASIS_TAG
    parser: str = DEFAULT_PARSER
    max_full_length: int = DEFAULT_MAX_FULL_LENGTH
    exclusions: ExclusionRules = field(default_factory=lambda: DEFAULT_EXCLUSIONS)
    workers: int | None = None

    def build_transformer(self) -> DocumentTransformer:
        return DocumentTransformer(
            self.exclusions,
            emphasis_tag=self.emphasis_tag,
            parser=self.parser,
            max_full_length=self.max_full_length,
        )


DEFAULT_OPTIONS = ConversionOptions()


def _string_list(value: object, *, key: str, source: str) -> list[str]:
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ConfigError(f"{source}: '{key}' must be an array of strings.")
    return list(value)


def _positive_int(value: object, *, key: str, source: str, allow_zero: bool = False) -> int:
    # bool is an int subclass; reject it explicitly.
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"{source}: '{key}' must be an integer.")
    if value < 0 or (value == 0 and not allow_zero):
        raise ConfigError(f"{source}: '{key}' must be {'non-negative' if allow_zero else 'positive'}.")
    return value


def _parse_exclusions(raw: object, *, source: str) -> ExclusionRules:
    if not isinstance(raw, Mapping):
        raise ConfigError(f"{source}: 'exclude' must be a table.")
    tags = DEFAULT_EXCLUSIONS.tags
    if "tags" in raw:
        tags = frozenset(_string_list(raw["tags"], key="exclude.tags", source=source))
    tag_classes: Mapping[str, object] = DEFAULT_EXCLUSIONS.tag_classes
    if "classes" in raw:
        classes_payload = raw["classes"]
        if not isinstance(classes_payload, Mapping):
            raise ConfigError(f"{source}: 'exclude.classes' must be a table.")
        tag_classes = {
            tag: _string_list(classes, key=f"exclude.classes.{tag}", source=source)
            for tag, classes in classes_payload.items()
        }
    return ExclusionRules.from_iterables(tags, tag_classes)


def options_from_mapping(raw: Mapping[str, object], *, source: str = "<config>") -> ConversionOptions:
    options = ConversionOptions()
    values: dict[str, object] = {}
    if "suffixes" in raw:
        suffixes = _string_list(raw["suffixes"], key="suffixes", source=source)
        if not suffixes or not all(suffixes):
            raise ConfigError(f"{source}: 'suffixes' must list at least one non-empty suffix.")
        values["suffixes"] = tuple(suffixes)
    if "emphasis_tag" in raw:
        tag = raw["emphasis_tag"]
        if not isinstance(tag, str) or not tag.strip():
            raise ConfigError(f"{source}: 'emphasis_tag' must be a non-empty string.")
        values["emphasis_tag"] = tag.strip()
    if "parser" in raw:
        parser = raw["parser"]
        if parser not in SUPPORTED_PARSERS:
            raise ConfigError(
                f"{source}: 'parser' must be one of {', '.join(SUPPORTED_PARSERS)}; got {parser!r}."
            )
        values["parser"] = parser
    if "max_full_length" in raw:
        values["max_full_length"] = _positive_int(
            raw["max_full_length"], key="max_full_length", source=source, allow_zero=True
        )
    if "workers" in raw:
        values["workers"] = _positive_int(raw["workers"], key="workers", source=source)
    if "exclude" in raw:
        values["exclusions"] = _parse_exclusions(raw["exclude"], source=source)
    unknown = sorted(set(raw) - {"suffixes", "emphasis_tag", "parser", "max_full_length", "workers", "exclude"})
    if unknown:
        raise ConfigError(f"{source}: unknown setting(s): {', '.join(unknown)}")
    if not values:
        return options
    return replace(options, **values)


def load_config(path: Path) -> ConversionOptions:
    try:
        with path.open("rb") as fh:
            raw = tomllib.load(fh)
    except FileNotFoundError as exc:
        raise ConfigError(f"Config file not found: {path}") from exc
    except (OSError, tomllib.TOMLDecodeError) as exc:
        raise ConfigError(f"Failed to parse config file: {path} ({exc})") from exc
    return options_from_mapping(raw, source=path.name)


__all__ = [
    "CONFIG_FILENAME",
    "ConfigError",
    "ConversionOptions",
    "DEFAULT_OPTIONS",
    "DEFAULT_SUFFIXES",
    "load_config",
    "options_from_mapping",
]
