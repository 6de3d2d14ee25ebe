"""Python wrapper for materialized ancestry paths.

An ancestry is the ordered chain of ancestor ids of a node, from the root
down to the immediate parent. It is persisted as one nullable string
column holding the ids joined with ``/``:

- ``None``  a root node (no ancestors)
- ``"1"``   a child of node 1
- ``"1/4"`` a grandchild of node 1 through node 4

This wrapper provides the codec and Python-side path arithmetic without
requiring database queries. Ids keep their Python type; a parser turns
each encoded segment back into an id when decoding.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from materialized_tree.core.database.exceptions import PathFormatError

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Iterator
    from typing import Self

SEPARATOR = "/"


def _encode_id(node_id: Any) -> str:
    text = str(node_id)
    if not text or SEPARATOR in text:
        raise PathFormatError(
            f"Id {node_id!r} cannot be encoded in an ancestry path",
            raw=node_id,
        )
    return text


class AncestryPath:
    """Immutable sequence of ancestor ids.

    Example:
        >>> path = AncestryPath.decode("1/4/9", parse=int)
        >>> path.depth
        3
        >>> path.parent_id
        9
        >>> path.encode()
        '1/4/9'
        >>> path / 12
        AncestryPath('1/4/9/12')
        >>> AncestryPath().encode() is None
        True

    Note:
        - The empty path means "root" and encodes to ``None``
        - Ids must have a non-empty text form without ``/``
    """

    __slots__ = ("_ids",)
    _ids: tuple[Any, ...]

    def __init__(self, ids: Iterable[Any] = ()) -> None:
        """Initialize from an iterable of ids.

        Raises:
            PathFormatError: If any id cannot be encoded
        """
        if isinstance(ids, AncestryPath):
            self._ids = ids._ids
            return
        self._ids = tuple(ids)
        for node_id in self._ids:
            _encode_id(node_id)

    @classmethod
    def from_ids(cls, *ids: Any) -> Self:
        """Create path from id arguments.

        Example:
            >>> AncestryPath.from_ids(1, 4)
            AncestryPath('1/4')
        """
        return cls(ids)

    @classmethod
    def decode(cls, raw: str | None, parse: Callable[[str], Any] = str) -> Self:
        """Decode a persisted ancestry string.

        Args:
            raw: Encoded ancestry, ``None`` or ``""`` for a root
            parse: Converts one segment to an id (``int``, ``uuid.UUID``...)

        Raises:
            PathFormatError: On empty segments or segments ``parse`` rejects
        """
        if not raw:
            return cls()
        ids = []
        for segment in raw.split(SEPARATOR):
            if not segment:
                raise PathFormatError(f"Empty segment in ancestry {raw!r}", raw=raw)
            try:
                ids.append(parse(segment))
            except (TypeError, ValueError) as exc:
                raise PathFormatError(
                    f"Invalid id {segment!r} in ancestry {raw!r}", raw=raw
                ) from exc
        return cls(ids)

    def encode(self) -> str | None:
        """Encode for storage. The empty path encodes to ``None``."""
        if not self._ids:
            return None
        return SEPARATOR.join(_encode_id(node_id) for node_id in self._ids)

    @property
    def ids(self) -> list[Any]:
        """Copy of the ancestor ids, root first."""
        return list(self._ids)

    @property
    def depth(self) -> int:
        """Number of ancestors (0 for a root)."""
        return len(self._ids)

    @property
    def root_id(self) -> Any | None:
        """First id in the path, or None when empty."""
        return self._ids[0] if self._ids else None

    @property
    def parent_id(self) -> Any | None:
        """Last id in the path, or None when empty."""
        return self._ids[-1] if self._ids else None

    @property
    def parent(self) -> AncestryPath | None:
        """Path with the last id removed, or None when empty.

        Example:
            >>> AncestryPath.from_ids(1, 4).parent
            AncestryPath('1')
        """
        if not self._ids:
            return None
        return AncestryPath(self._ids[:-1])

    def child(self, node_id: Any) -> AncestryPath:
        """Return the path with ``node_id`` appended."""
        return AncestryPath((*self._ids, node_id))

    def startswith(self, prefix: AncestryPath | Iterable[Any]) -> bool:
        """Check whether this path begins with ``prefix`` (id by id)."""
        prefix_ids = AncestryPath(prefix)._ids
        return self._ids[: len(prefix_ids)] == prefix_ids

    def replace_prefix(
        self,
        old: AncestryPath | Iterable[Any],
        new: AncestryPath | Iterable[Any],
    ) -> AncestryPath:
        """Swap the leading ``old`` ids for ``new``.

        Example:
            >>> AncestryPath.from_ids(1, 4, 9).replace_prefix([1, 4], [7])
            AncestryPath('7/9')

        Raises:
            PathFormatError: If this path does not start with ``old``
        """
        old_path = AncestryPath(old)
        if not self.startswith(old_path):
            raise PathFormatError(
                f"Ancestry {self} does not start with {old_path}",
                raw=self.encode(),
            )
        return AncestryPath((*AncestryPath(new)._ids, *self._ids[len(old_path) :]))

    def is_ancestor_of(self, other: AncestryPath | Iterable[Any]) -> bool:
        """Check if this path is a proper prefix of ``other``."""
        other_path = AncestryPath(other)
        return len(other_path) > len(self) and other_path.startswith(self)

    def is_descendant_of(self, other: AncestryPath | Iterable[Any]) -> bool:
        """Check if ``other`` is a proper prefix of this path."""
        return AncestryPath(other).is_ancestor_of(self)

    def common_ancestor(self, other: AncestryPath | Iterable[Any]) -> AncestryPath:
        """Longest shared prefix of two paths (empty when none)."""
        common = []
        for mine, theirs in zip(self._ids, AncestryPath(other)._ids, strict=False):
            if mine != theirs:
                break
            common.append(mine)
        return AncestryPath(common)

    def __truediv__(self, node_id: Any) -> AncestryPath:
        """Append an id using / operator."""
        return self.child(node_id)

    def __iter__(self) -> Iterator[Any]:
        return iter(self._ids)

    def __len__(self) -> int:
        return len(self._ids)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._ids

    def __getitem__(self, index: int) -> Any:
        return self._ids[index]

    def __bool__(self) -> bool:
        """Empty path is falsy."""
        return bool(self._ids)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, AncestryPath):
            return self._ids == other._ids
        if isinstance(other, (list, tuple)):
            return self._ids == tuple(other)
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._ids)

    def __str__(self) -> str:
        return self.encode() or ""

    def __repr__(self) -> str:
        return f"AncestryPath({str(self)!r})"


def encode_ancestry(ids: Iterable[Any]) -> str | None:
    """Encode a sequence of ids. The empty sequence encodes to ``None``."""
    return AncestryPath(ids).encode()


def decode_ancestry(raw: str | None, parse: Callable[[str], Any] = str) -> list[Any]:
    """Decode a persisted ancestry string into a list of ids."""
    return AncestryPath.decode(raw, parse).ids


__all__ = [
    "SEPARATOR",
    "AncestryPath",
    "decode_ancestry",
    "encode_ancestry",
]
