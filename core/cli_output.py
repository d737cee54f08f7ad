"""CLI output formatting utilities.

Commands hand rows (dicts or dataclasses) to OutputWriter, which renders them
as text lines, JSON, YAML or an aligned table.
"""
from __future__ import annotations

import json
import sys
from dataclasses import asdict, dataclass, is_dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, TextIO

import yaml


class OutputFormat(str, Enum):
    """Output format options."""
    TEXT = "text"
    JSON = "json"
    YAML = "yaml"
    TABLE = "table"


@dataclass
class OutputConfig:
    """Configuration for output formatting."""
    format: OutputFormat = OutputFormat.TEXT
    verbose: bool = False
    quiet: bool = False
    file: Optional[TextIO] = None

    @property
    def stream(self) -> TextIO:
        return self.file or sys.stdout


class OutputWriter:
    """Handles formatted output for CLI commands."""

    def __init__(self, config: Optional[OutputConfig] = None):
        self.config = config or OutputConfig()

    @property
    def structured(self) -> bool:
        """True when the format is machine-readable (json/yaml)."""
        return self.config.format in (OutputFormat.JSON, OutputFormat.YAML)

    def print(self, *args, **kwargs) -> None:
        """Print to the configured output stream."""
        if self.config.quiet:
            return
        kwargs.setdefault("file", self.config.stream)
        print(*args, **kwargs)

    def print_records(
        self,
        rows: Sequence[Any],
        *,
        headers: Optional[List[str]] = None,
        text_line: Optional[Callable[[Dict[str, Any]], str]] = None,
        empty: str = "",
    ) -> None:
        """Print a list of records.

        Text format uses ``text_line`` per row; table format aligns ``headers``.
        """
        data = [self.normalize(r) for r in rows]
        fmt = self.config.format
        if fmt == OutputFormat.JSON:
            self._print_json(data)
        elif fmt == OutputFormat.YAML:
            self._print_yaml(data)
        elif not data:
            if empty:
                self.print(empty)
        elif fmt == OutputFormat.TABLE:
            self._print_table(data, headers or list(data[0].keys()))
        else:
            for row in data:
                self.print(text_line(row) if text_line else " | ".join(str(v) for v in row.values()))

    def print_dict(self, data: Any, *, separator: str = ": ") -> None:
        """Print a mapping (or dataclass) as key-value pairs."""
        normalized = self.normalize(data)
        if self.config.format == OutputFormat.JSON:
            self._print_json(normalized)
            return
        if self.config.format == OutputFormat.YAML:
            self._print_yaml(normalized)
            return
        for key, value in normalized.items():
            self.print(f"{key}{separator}{'' if value is None else value}")

    def _print_json(self, data: Any) -> None:
        self.print(json.dumps(data, indent=2, default=str))

    def _print_yaml(self, data: Any) -> None:
        self.print(yaml.safe_dump(data, default_flow_style=False, sort_keys=False).rstrip())

    def _print_table(self, rows: List[Dict[str, Any]], headers: List[str]) -> None:
        str_rows = [["" if row.get(h) is None else str(row.get(h)) for h in headers] for row in rows]
        widths = [len(h) for h in headers]
        for str_row in str_rows:
            for i, val in enumerate(str_row):
                widths[i] = max(widths[i], len(val))
        header_line = " | ".join(h.ljust(widths[i]) for i, h in enumerate(headers))
        self.print(header_line)
        self.print("-" * len(header_line))
        for str_row in str_rows:
            self.print(" | ".join(v.ljust(widths[i]) for i, v in enumerate(str_row)))

    def normalize(self, data: Any) -> Any:
        """Normalize dataclasses, enums and datetimes for serialization."""
        if is_dataclass(data) and not isinstance(data, type):
            return self.normalize(asdict(data))
        if isinstance(data, dict):
            return {k: self.normalize(v) for k, v in data.items()}
        if isinstance(data, (list, tuple)):
            return [self.normalize(v) for v in data]
        if isinstance(data, Enum):
            return data.value
        if isinstance(data, datetime):
            return data.isoformat()
        return data
