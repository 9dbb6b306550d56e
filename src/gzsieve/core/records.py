# records.py
# SPDX-License-Identifier: MIT
"""Typed records decoded from the JSON payloads inside each archive.

Each top-level JSON value in a decompressed stream is an envelope object
whose ``items`` list holds bibliographic work entries. Unknown keys are
ignored at every level. Known keys are matched case-insensitively (the last
match wins) and must hold the JSON type they are declared with.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from .errors import DecodeError

__all__ = [
    "AuthorName",
    "WorkRecord",
    "DecodedBatch",
    "batch_from_value",
    "record_from_mapping",
    "project_record",
]

ITEMS_KEY = "items"
_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1


@dataclass(frozen=True, slots=True)
class AuthorName:
    given: str = ""
    family: str = ""

    def display(self) -> str:
        return " ".join(part for part in (self.given, self.family) if part)


@dataclass(frozen=True, slots=True)
class WorkRecord:
    """A single work entry.

    Attributes:
        doi (str): Identifier from the ``DOI`` key.
        title (tuple[str, ...]): Titles from the ``title`` list.
        references_count (int): Value of ``references-count``.
        author (tuple[AuthorName, ...]): Author name pairs.
    """

    doi: str = ""
    title: tuple[str, ...] = ()
    references_count: int = 0
    author: tuple[AuthorName, ...] = ()


@dataclass(frozen=True, slots=True)
class DecodedBatch:
    """Records decoded from one top-level JSON value, in source order."""

    records: tuple[WorkRecord, ...] = field(default_factory=tuple)

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self):
        return iter(self.records)


# -----------------------
# Decoding helpers
# -----------------------

def _lookup(obj: Mapping[str, Any], key: str) -> Any:
    """Return the value of the last key matching ``key`` case-insensitively."""
    folded = key.casefold()
    found = None
    for k, v in obj.items():
        if isinstance(k, str) and k.casefold() == folded:
            found = v
    return found


def _type_error(field_name: str, expected: str, value: Any) -> DecodeError:
    return DecodeError(
        f"cannot decode {type(value).__name__} into field {field_name!r} of type {expected}"
    )


def _as_str(value: Any, field_name: str) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise _type_error(field_name, "string", value)
    return value


def _as_int(value: Any, field_name: str) -> int:
    if value is None:
        return 0
    # bool is an int subclass but not a JSON number
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise _type_error(field_name, "int", value)
    if isinstance(value, float) or not _INT64_MIN <= value <= _INT64_MAX:
        raise DecodeError(f"cannot decode number {value!r} into field {field_name!r} of type int")
    return value


def _as_list(value: Any, field_name: str) -> list[Any]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise _type_error(field_name, "array", value)
    return value


def _as_object(value: Any, field_name: str) -> Mapping[str, Any] | None:
    if value is None:
        return None
    if not isinstance(value, Mapping):
        raise _type_error(field_name, "object", value)
    return value


def _author_from_value(value: Any) -> AuthorName:
    obj = _as_object(value, "author")
    if obj is None:
        return AuthorName()
    return AuthorName(
        given=_as_str(_lookup(obj, "given"), "given"),
        family=_as_str(_lookup(obj, "family"), "family"),
    )


def record_from_mapping(obj: Mapping[str, Any]) -> WorkRecord:
    """Build a :class:`WorkRecord` from a decoded JSON object.

    Raises:
        DecodeError: If a known key holds a value of the wrong JSON type.
    """
    return WorkRecord(
        doi=_as_str(_lookup(obj, "DOI"), "DOI"),
        title=tuple(_as_str(t, "title") for t in _as_list(_lookup(obj, "title"), "title")),
        references_count=_as_int(_lookup(obj, "references-count"), "references-count"),
        author=tuple(_author_from_value(a) for a in _as_list(_lookup(obj, "author"), "author")),
    )


def batch_from_value(value: Any) -> DecodedBatch:
    """Turn one top-level JSON value into a :class:`DecodedBatch`.

    The value must be an object. A missing or ``null`` ``items`` key yields an
    empty batch.

    Raises:
        DecodeError: If the envelope or any item has the wrong shape.
    """
    if not isinstance(value, Mapping):
        raise _type_error("<envelope>", "object", value)
    records: list[WorkRecord] = []
    for raw in _as_list(_lookup(value, ITEMS_KEY), ITEMS_KEY):
        obj = _as_object(raw, ITEMS_KEY)
        records.append(WorkRecord() if obj is None else record_from_mapping(obj))
    return DecodedBatch(records=tuple(records))


def project_record(record: WorkRecord, source: str | None = None) -> dict[str, Any]:
    """Return the JSON-ready projection written by file sinks."""
    out: dict[str, Any] = {
        "DOI": record.doi,
        "title": list(record.title),
        "references-count": record.references_count,
        "author": [{"given": a.given, "family": a.family} for a in record.author],
    }
    if source is not None:
        out["source"] = source
    return out
