"""Column schema selection for flattened event rows."""
from __future__ import annotations

from typing import Dict, List, Literal, Mapping, Sequence, Tuple

SchemaPolicy = Literal["frequency", "intersection"]

SCHEMA_POLICIES: Tuple[str, ...] = ("frequency", "intersection")
DEFAULT_SCHEMA_POLICY: SchemaPolicy = "frequency"


def frequency_schema(rows: Sequence[Mapping[str, str]]) -> Tuple[str, ...]:
    """Every key seen in any row, the most common columns first.

    Keys present in the same number of rows keep their first-seen order.
    """

    counts: Dict[str, int] = {}
    for row in rows:
        for key in row:
            counts[key] = counts.get(key, 0) + 1
    # sorted() is stable, so ties stay in insertion (first-seen) order
    return tuple(sorted(counts, key=lambda key: -counts[key]))


def intersection_schema(rows: Sequence[Mapping[str, str]]) -> Tuple[str, ...]:
    """Keys common to the rows, in the order of the running intersection.

    An empty running set is replaced by the next row's keys rather than
    intersected with it.
    """

    merged: List[str] = []
    for row in rows:
        if merged:
            merged = [key for key in merged if key in row]
        else:
            merged = list(row)
    return tuple(merged)


def select_schema(
    rows: Sequence[Mapping[str, str]],
    policy: SchemaPolicy = DEFAULT_SCHEMA_POLICY,
) -> Tuple[str, ...]:
    if policy == "frequency":
        return frequency_schema(rows)
    if policy == "intersection":
        return intersection_schema(rows)
    raise ValueError(
        f"Unknown schema policy {policy!r}; expected one of {', '.join(SCHEMA_POLICIES)}"
    )
