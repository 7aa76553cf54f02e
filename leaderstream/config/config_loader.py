"""
Purpose:
    - Load a TOML config file
    - Layer it with CLI overrides (--set key.path=value)
    - Validate the result into AppConfig
"""

from __future__ import annotations

import tomllib
from pathlib import Path
from typing import Any, Mapping, Optional

from pydantic import ValidationError

from leaderstream.config.models import AppConfig
from leaderstream.data.live.errors import ConfigurationError


def insert_path(tree: dict[str, Any], dotted_path: str, value: Any) -> None:
    """Populate ``tree`` with ``value`` located at ``dotted_path``."""
    segments = [segment.strip() for segment in dotted_path.split(".") if segment.strip()]
    if not segments:
        raise ValueError("Override keys must contain at least one non-empty segment")

    cursor: dict[str, Any] = tree
    for segment in segments[:-1]:
        existing = cursor.get(segment)
        if existing is None:
            cursor[segment] = {}
            cursor = cursor[segment]
        elif isinstance(existing, dict):
            cursor = existing
        else:
            raise ValueError(
                f"Cannot override nested path '{dotted_path}': segment '{segment}' is already a value"
            )
    cursor[segments[-1]] = value


def parse_overrides(pairs: list[str]) -> dict[str, Any]:
    """Turn ``["a.b=1", ...]`` into a nested mapping. Values stay strings; pydantic coerces."""
    overrides: dict[str, Any] = {}
    for item in pairs:
        key, sep, value = item.partition("=")
        if sep == "":
            raise ValueError(f"--set requires KEY=VALUE format (got {item!r})")
        insert_path(overrides, key, value)
    return overrides


def deep_merge(base: Mapping[str, Any], layer: Mapping[str, Any]) -> dict[str, Any]:
    """Merge ``layer`` over ``base``; nested mappings merge, everything else replaces."""
    merged: dict[str, Any] = dict(base)
    for key, value in layer.items():
        current = merged.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = value
    return merged


class ConfigLoader:
    """
    Config-loader; loading toml file.
    """

    def __init__(self, base_dir: str = ".") -> None:
        self._base_dir = base_dir

    def load(self, file_name: str | Path) -> dict[str, Any]:
        path = Path(file_name)
        if not path.is_absolute():
            path = Path(self._base_dir) / path

        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        with path.open("rb") as f:
            return tomllib.load(f)

    def resolve(
        self,
        file_name: Optional[str | Path] = None,
        overrides: Optional[Mapping[str, Any]] = None,
    ) -> AppConfig:
        """
        Layers: defaults < file < overrides.

        Raises:
            ConfigurationError: merged config does not validate
        """
        layered: dict[str, Any] = {}
        if file_name is not None:
            layered = deep_merge(layered, self.load(file_name))
        if overrides:
            layered = deep_merge(layered, overrides)

        try:
            return AppConfig.model_validate(layered)
        except ValidationError as e:
            paths = [".".join(str(p) for p in err["loc"]) for err in e.errors()]
            raise ConfigurationError(
                f"Invalid configuration: {e.error_count()} error(s)",
                field=", ".join(paths),
                component="ConfigLoader",
            ) from e
