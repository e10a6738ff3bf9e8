"""Node settings loaded from YAML, and parsing of duration strings."""

from __future__ import annotations

import re
from collections.abc import Mapping
from datetime import timedelta
from fractions import Fraction
from pathlib import Path
from typing import Any

import yaml


def _normalise(data: Mapping) -> dict[str, Any]:
    return {
        str(key).lower(): _normalise(value) if isinstance(value, Mapping) else value
        for key, value in data.items()
    }


class Settings:
    """Nested settings looked up by case-insensitive dotted keys."""

    def __init__(self, data: Mapping | None = None) -> None:
        self._data = _normalise(data or {})

    def __repr__(self) -> str:
        return f"Settings({self._data!r})"

    def get(self, key: str, default: Any = None) -> Any:
        """Return the value at dotted ``key``, or ``default`` when absent."""
        node: Any = self._data
        for part in key.lower().split("."):
            if not isinstance(node, Mapping) or part not in node:
                return default
            node = node[part]
        return node

    def get_string(self, key: str) -> str:
        """Return the value at ``key`` as a string; empty when absent or not a scalar."""
        value = self.get(key)
        if value is None or isinstance(value, (Mapping, list, tuple)):
            return ""
        if isinstance(value, bool):
            return str(value).lower()
        if isinstance(value, float) and value.is_integer():
            return str(int(value))
        return str(value)

    def get_int(self, key: str) -> int:
        """Return the value at ``key`` as an integer; zero when absent or unparseable."""
        value = self.get(key)
        if isinstance(value, (int, float)):
            return int(value)
        if isinstance(value, str):
            for convert in (int, lambda text: int(text, 0), lambda text: int(float(text))):
                try:
                    return convert(value.strip())
                except ValueError:
                    pass
        return 0

    def get_list(self, key: str) -> list[Any]:
        """Return the sequence at ``key``; a string is split on whitespace."""
        value = self.get(key)
        if value is None:
            return []
        if isinstance(value, str):
            return value.split()
        if isinstance(value, (list, tuple)):
            return list(value)
        raise TypeError(f"setting {key!r} is not a list: {value!r}")


def load_settings(path: str | Path | None = None) -> Settings:
    """Read settings from a YAML file, or from ``config.yaml`` inside a directory."""
    location = Path(path) if path is not None else Path("config")
    if location.is_dir():
        found = [location / name for name in ("config.yaml", "config.yml")]
        found = [candidate for candidate in found if candidate.is_file()]
        if not found:
            raise FileNotFoundError(f'Config File "config" Not Found in "{location}"')
        location = found[0]
    with location.open(encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    if not isinstance(data, Mapping):
        raise ValueError(f"configuration in {location} is not a mapping")
    return Settings(data)


_UNIT_NANOS = {
    "ns": 1,
    "us": 1_000,
    "µs": 1_000,
    "μs": 1_000,
    "ms": 1_000_000,
    "s": 1_000_000_000,
    "m": 60_000_000_000,
    "h": 3_600_000_000_000,
}
_COMPONENT = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)")


def parse_duration(text: str) -> timedelta:
    """Parse a duration such as ``"1h30m"``, ``"300ms"`` or ``"-1.5s"``."""
    invalid = ValueError(f'time: invalid duration "{text}"')
    sign = -1 if text.startswith("-") else 1
    body = text[1:] if text.startswith(("+", "-")) else text
    if body == "0":
        return timedelta(0)
    if not body:
        raise invalid
    total = Fraction(0)
    position = 0
    while position < len(body):
        match = _COMPONENT.match(body, position)
        if match is None:
            raise invalid
        number, unit = match.groups()
        total += Fraction(number.rstrip(".")) * _UNIT_NANOS[unit]
        position = match.end()
    nanos = int(total)
    if nanos > 2**63 - 1:
        raise invalid
    return timedelta(microseconds=sign * nanos / 1000)