import re
from typing import Iterable

_COPY_SUFFIX = re.compile(r"\s*\(\d+\)$")


def unique_name(base: str, existing: Iterable[str]) -> str:
    """Return ``base`` if free, else the first free ``"{base} (N)"``.

    Checked against the live set each time, so a number freed by a delete is
    handed out again on the next collision.
    """
    taken = set(existing)
    if base not in taken:
        return base
    return _first_free_suffix(base, taken)


def strip_copy_suffix(title: str) -> str:
    return _COPY_SUFFIX.sub("", title)


def clone_title(title: str, existing: Iterable[str]) -> str:
    """Title for a copy of ``title``: always suffixed, never the bare base."""
    return _first_free_suffix(strip_copy_suffix(title), set(existing))


def _first_free_suffix(base: str, taken: set) -> str:
    counter = 1
    candidate = f"{base} ({counter})"
    while candidate in taken:
        counter += 1
        candidate = f"{base} ({counter})"
    return candidate
