"""Immutable schema paths."""

from __future__ import annotations

from typing import Iterable, Union

Segment = Union[str, int]


class SchemaPath(tuple):
    """Location of a schema node from the document root.

    A ``tuple`` of ``str``/``int`` segments such as
    ``("properties", "address", "properties", "city")``.  Paths are
    shared between siblings, so :meth:`append` always returns a new
    path and never touches the receiver.
    """

    __slots__ = ()

    def __new__(cls, segments: Iterable[Segment] = ()) -> "SchemaPath":
        return super().__new__(cls, tuple(segments))

    def append(self, *segments: Segment) -> "SchemaPath":
        return SchemaPath(tuple(self) + segments)

    @property
    def last(self) -> Segment | None:
        return self[-1] if self else None

    def key(self) -> str:
        """Serialize to a stable string (JSON Pointer escaping, no leading slash)."""
        return "/".join(
            str(s).replace("~", "~0").replace("/", "~1") for s in self
        )

    @classmethod
    def parse(cls, key: str) -> "SchemaPath":
        """Inverse of :meth:`key`; digit-only segments become ``int``."""
        if key == "":
            return cls()
        segments: list[Segment] = []
        for raw in key.split("/"):
            s = raw.replace("~1", "/").replace("~0", "~")
            segments.append(int(s) if s.isascii() and s.isdigit() else s)
        return cls(segments)

    def __repr__(self) -> str:
        return f"SchemaPath({', '.join(repr(s) for s in self)})"

    def __add__(self, other: tuple) -> "SchemaPath":  # type: ignore[override]
        return SchemaPath(tuple(self) + tuple(other))
