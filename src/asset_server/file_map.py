"""Read-only virtual-path to source-location mapping consumed by the resolver."""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Iterable, Mapping, Sequence, Union


class FileMapError(Exception):
    """Raised when a virtual mapping definition is invalid."""


@dataclass(frozen=True)
class MappingEntry:
    """One physical source location, relative to the served root."""
    src: str


FileMap = Mapping[str, Sequence[MappingEntry]]


def build_file_map(
    entries: Iterable[tuple[str, Union[str, Sequence[str]]]],
) -> FileMap:
    """Build an insertion-ordered, read-only mapping from `(key, sources)` pairs.

    Keys keep the order they are first seen in; a repeated key appends its
    sources to the earlier entry list so fallback priority follows
    declaration order.
    """
    grouped: dict[str, list[MappingEntry]] = {}
    for key, sources in entries:
        if not isinstance(key, str) or not key:
            raise FileMapError("Mapping path cannot be empty")
        if not key.startswith("/"):
            raise FileMapError(f"Mapping path must start with '/': {key}")

        if isinstance(sources, str):
            sources = (sources,)
        bucket = grouped.setdefault(key, [])
        for src in sources:
            if not isinstance(src, str) or not src:
                raise FileMapError(f"Mapping source for {key} must be a non-empty string")
            bucket.append(MappingEntry(src=src))

    return MappingProxyType({key: tuple(values) for key, values in grouped.items()})
