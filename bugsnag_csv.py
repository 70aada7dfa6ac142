"""CSV rendering and export helpers for Bugsnag events."""
from __future__ import annotations

import gzip
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Any, Dict, Iterable, Iterator, List, Optional, Sequence

from bugsnag_flatten import flatten
from bugsnag_schema import DEFAULT_SCHEMA_POLICY, SCHEMA_POLICIES, SchemaPolicy, select_schema

logger = logging.getLogger(__name__)

_NEEDS_QUOTING = ("\n", ",", '"')


class MalformedRecordError(ValueError):
    """Raised when a top-level record is not a JSON object or array."""


@dataclass
class ExportConfig:
    limit: Optional[int] = None
    schema_policy: SchemaPolicy = DEFAULT_SCHEMA_POLICY

    @classmethod
    def from_env(cls) -> "ExportConfig":
        limit = os.getenv("BUGSNAG_EXPORT_LIMIT")
        return cls(
            limit=int(limit) if limit else None,
            schema_policy=os.getenv("BUGSNAG_SCHEMA_POLICY", DEFAULT_SCHEMA_POLICY),  # type: ignore[arg-type]
        )

    def validate(self) -> None:
        if self.limit is not None and (isinstance(self.limit, bool) or self.limit < 1):
            raise ValueError("limit must be a positive integer")
        if self.schema_policy not in SCHEMA_POLICIES:
            raise ValueError(
                f"schema_policy must be one of {', '.join(SCHEMA_POLICIES)}, got {self.schema_policy!r}"
            )


def encode_row(cells: Sequence[str]) -> str:
    """Encode one row as a CSV line terminated by ``\\n``.

    Cells containing a newline, comma or double quote are quoted with inner
    quotes doubled. A row made of a single empty cell is written as ``""`` so
    it does not collapse into a blank line.
    """

    parts: List[str] = []
    for cell in cells:
        if any(char in cell for char in _NEEDS_QUOTING) or (cell == "" and len(cells) == 1):
            cell = '"' + cell.replace('"', '""') + '"'
        parts.append(cell)
    return ",".join(parts) + "\n"


def flatten_records(records: Iterable[Any]) -> List[Dict[str, str]]:
    rows: List[Dict[str, str]] = []
    for index, record in enumerate(records):
        if not isinstance(record, (dict, list)):
            raise MalformedRecordError(
                f"Record {index} is a {type(record).__name__}, expected a JSON object"
            )
        rows.append(flatten(record))
    return rows


def export_csv(
    records: Iterable[Any],
    policy: SchemaPolicy = DEFAULT_SCHEMA_POLICY,
) -> Iterator[str]:
    """Yield the CSV header line followed by one line per record.

    All records are flattened before anything is yielded because the column
    schema depends on every row. Malformed records therefore fail before the
    header is produced.
    """

    rows = flatten_records(records)
    columns = select_schema(rows, policy)
    logger.debug("Selected %d columns for %d rows using %s policy", len(columns), len(rows), policy)
    return _render(rows, columns)


def _render(rows: List[Dict[str, str]], columns: Sequence[str]) -> Iterator[str]:
    yield encode_row(columns)
    for row in rows:
        yield encode_row([row.get(column, "") for column in columns])


def export_csv_text(
    records: Iterable[Any],
    policy: SchemaPolicy = DEFAULT_SCHEMA_POLICY,
) -> str:
    return "".join(export_csv(records, policy))


def write_csv_filelike(lines: Iterable[str], handle: IO[str]) -> int:
    """Write CSV lines to an open text handle and return the line count."""

    count = 0
    for line in lines:
        handle.write(line)
        count += 1
    return count


def write_csv(lines: Iterable[str], output_path: str) -> int:
    path = Path(output_path)
    open_fn = gzip.open if path.suffix == ".gz" else open
    with open_fn(path, "wt", encoding="utf-8", newline="") as csvfile:
        count = write_csv_filelike(lines, csvfile)
    logger.info("CSV written to %s", path)
    return count
