from __future__ import annotations

import re
from typing import Callable

_WS = re.compile(r"\s+")
_DASHES = re.compile("[‐‑‒–—―−­﹘﹣－]")
_UK_POSTCODE = re.compile(
    r"^(([GIR] ?0[A]{2})|((([A-Z][0-9]{1,2})|(([A-Z][A-HJ-Y][0-9]{1,2})|(([A-Z][0-9][A-Z])"
    r"|([A-Z][A-HJ-Y][0-9]?[A-Z])))) ?[0-9][A-Z]{2}))$",
    re.IGNORECASE,
)

LINE_SEPARATOR = ", "


def normalize_query(q: str) -> str:
    q = (q or "").strip()
    q = _WS.sub(" ", q)
    return q


def is_uk_postcode(value: str) -> bool:
    """Empty values pass; emptiness is the ``required`` validator's job."""
    value = (value or "").strip()
    return value == "" or bool(_UK_POSTCODE.match(value))


def uppercase(value: str) -> str:
    return (value or "").upper()


def trim(value: str) -> str:
    return (value or "").strip()


def hyphens(value: str) -> str:
    """Replace typographic dashes with a plain hyphen-minus."""
    return _DASHES.sub("-", value or "")


FORMATTERS: dict[str, Callable[[str], str]] = {
    "uppercase": uppercase,
    "trim": trim,
    "hyphens": hyphens,
}


def join_lines(formatted_address: str) -> str:
    """'1 High St\\nLondon' -> '1 High St, London' (select option value)."""
    return LINE_SEPARATOR.join(formatted_address.split("\n"))


def split_lines(selected: str) -> str:
    """Inverse of :func:`join_lines`, used when storing the chosen address."""
    return "\n".join(selected.split(LINE_SEPARATOR))
