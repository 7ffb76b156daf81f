"""
Method index: records produced by the external indexer, plus source resolution.

Responsibility: Load the indexer's JSON ({"methods": {key: {...}}}) into
MethodRecord values and read a method's source lines from the project tree.
The index is read-only once loaded.
"""

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from codecontext.core.errors import ConfigurationError
from codecontext.schemas.methods import MethodRecord

logger = logging.getLogger(__name__)


class MethodIndex:
    def __init__(self, records: dict[str, MethodRecord], root: str | Path = ".") -> None:
        self._records = dict(records)
        self.root = Path(root)
        self._file_lines: dict[str, list[str] | None] = {}

    @classmethod
    def from_dict(cls, data: dict[str, Any], root: str | Path = ".") -> "MethodIndex":
        """Build from the indexer's JSON object. Malformed entries are skipped."""
        methods = data.get("methods") or {}
        records: dict[str, MethodRecord] = {}
        for key, raw in methods.items():
            if not isinstance(raw, dict):
                continue
            try:
                records[key] = MethodRecord.model_validate({**raw, "key": key})
            except ValidationError as e:
                logger.warning("[method_index:from_dict] skip key=%s: %s", key, e.errors()[:1])
        return cls(records, root)

    @classmethod
    def load(cls, path: str | Path, root: str | Path = ".") -> "MethodIndex":
        path = Path(path)
        logger.info("[method_index:load] IN  path=%s", path)
        if not path.is_file():
            raise ConfigurationError(f"Method index not found: {path}. Run the indexer first.")
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Method index {path} is unreadable: {e}") from e
        index = cls.from_dict(data if isinstance(data, dict) else {}, root)
        logger.info("[method_index:load] OUT methods=%d", len(index))
        return index

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, key: object) -> bool:
        return key in self._records

    def get(self, key: str) -> MethodRecord | None:
        return self._records.get(key)

    def items(self):
        """(key, record) pairs sorted by key."""
        return sorted(self._records.items())

    def _lines(self, relative: str) -> list[str] | None:
        if relative not in self._file_lines:
            try:
                text = (self.root / relative).read_text(encoding="utf-8")
                self._file_lines[relative] = text.splitlines()
            except (OSError, UnicodeDecodeError) as e:
                logger.warning("[method_index:read_code] cannot read file=%s: %s", relative, e)
                self._file_lines[relative] = None
        return self._file_lines[relative]

    def read_code(self, record: MethodRecord) -> str | None:
        """Source text for record.line..record.end_line (1-based, inclusive), or None when unresolvable."""
        if not record.file or not record.line:
            return None
        lines = self._lines(record.file)
        if lines is None:
            return None
        start = record.line - 1
        end = record.end_line if record.end_line and record.end_line >= record.line else record.line
        if start >= len(lines):
            return None
        return "\n".join(lines[start:end])
