"""Small helpers for maps, JSON field tags and error wrapping."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Optional, TypeVar

K = TypeVar("K")
V = TypeVar("V")


def sorted_items(m: Mapping[K, V]) -> Iterator[tuple[K, V]]:
    """Yield the entries of ``m`` in key order."""
    for key in sorted(m):
        yield key, m[key]


def key_list(m: Mapping[K, V]) -> list[K]:
    """Return the keys of ``m`` as a list."""
    return list(m)


@dataclass
class JSONInfo:
    """How a struct field is treated by JSON encoding."""

    omit: bool = False
    name: str = ""
    settings: Optional[dict[str, bool]] = None


def field_json_info(name: str, tag: Optional[str]) -> JSONInfo:
    """Describe how a field called ``name`` with JSON tag ``tag`` is encoded.

    A field is exported when its name starts with an upper-case letter; an
    unexported field is omitted. ``tag`` is None when the field has no JSON tag.
    """
    if not name[:1].isupper():
        return JSONInfo(omit=True)
    info = JSONInfo(name=name)
    if tag is None:
        return info
    tag_name, sep, rest = tag.partition(",")
    # "-" means omit, but "-," means the name is "-".
    if tag_name == "-" and not sep:
        return JSONInfo(omit=True)
    if tag_name:
        info.name = tag_name
    if rest:
        info.settings = {setting: True for setting in rest.split(",")}
    return info


class _WrappedError(Exception):
    """An error with added context; the original is its cause."""


@contextmanager
def wrapf(format: str, *args: Any) -> Iterator[None]:
    """Re-raise any error from the block with a formatted prefix.

    The original error is kept as the new error's ``__cause__``.
    """
    try:
        yield
    except Exception as err:
        prefix = format % args if args else format
        raise _WrappedError(f"{prefix}: {err}") from err