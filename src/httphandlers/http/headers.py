"""
=============================================================================
HTTP HEADER MULTIMAP
=============================================================================

Headers are not a plain dictionary. A single name may appear several times
and names compare case-insensitively, while clients expect the original
spelling of both names and values on the wire.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                      HEADERS LAYOUT                                 │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   key (lowercase)     display name        values (in order)         │
    │   ─────────────────   ─────────────────   ───────────────────────   │
    │   "vary"              "Vary"              ["Origin",                │
    │                                            "Accept-Encoding"]       │
    │   "content-type"      "Content-Type"      ["text/plain"]            │
    │                                                                      │
    │   headers.get("VARY")       → "Origin"          (first value)       │
    │   headers.get_all("vary")   → ["Origin", "Accept-Encoding"]         │
    │   "Accept-Encoding" in headers → False                              │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Presence matters independently of value: a request with an empty
``Accept-Encoding:`` field is different from a request without one, so
``name in headers`` answers "was the field sent at all".

=============================================================================
"""

from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Tuple, Union


HeaderInit = Union[
    "Headers",
    Mapping[str, Union[str, List[str]]],
    Iterable[Tuple[str, str]],
]


class Headers:
    """
    Ordered, case-insensitive multimap of header names to value lists.

    Names are looked up case-insensitively but keep the spelling they were
    first added with. Values are stored untouched.

    Usage:
        headers = Headers({"Content-Type": "text/plain"})
        headers.add("Vary", "Accept-Encoding")
        headers.set("Content-Encoding", "gzip")
        headers.delete("Content-Length")
    """

    def __init__(self, init: Optional[HeaderInit] = None):
        # lowercase name -> (display name, values)
        self._fields: Dict[str, Tuple[str, List[str]]] = {}

        if init is None:
            return
        if isinstance(init, Headers):
            for name, value in init.items():
                self.add(name, value)
        elif isinstance(init, Mapping):
            for name, value in init.items():
                if isinstance(value, (list, tuple)):
                    for item in value:
                        self.add(name, item)
                else:
                    self.add(name, value)
        else:
            for name, value in init:
                self.add(name, value)

    # =========================================================================
    # LOOKUP
    # =========================================================================

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Return the first value for ``name``, or ``default``."""
        field = self._fields.get(name.lower())
        if field is None or not field[1]:
            return default
        return field[1][0]

    def get_all(self, name: str) -> List[str]:
        """Return every value for ``name`` (empty list if absent)."""
        field = self._fields.get(name.lower())
        return list(field[1]) if field else []

    def __getitem__(self, name: str) -> str:
        value = self.get(name)
        if value is None:
            raise KeyError(name)
        return value

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lower() in self._fields

    # =========================================================================
    # MUTATION
    # =========================================================================

    def set(self, name: str, value: str) -> None:
        """Replace all values of ``name`` with a single ``value``."""
        key = name.lower()
        display = self._fields[key][0] if key in self._fields else name
        self._fields[key] = (display, [value])

    def add(self, name: str, value: str) -> None:
        """Append ``value`` to ``name``, keeping any existing values."""
        key = name.lower()
        if key in self._fields:
            self._fields[key][1].append(value)
        else:
            self._fields[key] = (name, [value])

    def delete(self, name: str) -> None:
        """Remove ``name`` and all its values. Missing names are ignored."""
        self._fields.pop(name.lower(), None)

    def __setitem__(self, name: str, value: str) -> None:
        self.set(name, value)

    def __delitem__(self, name: str) -> None:
        self.delete(name)

    # =========================================================================
    # ITERATION
    # =========================================================================

    def __iter__(self) -> Iterator[str]:
        """Iterate over display names, one per distinct header."""
        return (display for display, _ in self._fields.values())

    def __len__(self) -> int:
        return len(self._fields)

    def items(self) -> Iterator[Tuple[str, str]]:
        """Yield every (name, value) pair in insertion order."""
        for display, values in self._fields.values():
            for value in values:
                yield display, value

    def copy(self) -> "Headers":
        return Headers(self)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Headers):
            return NotImplemented
        return list(self.items()) == list(other.items())

    def __repr__(self) -> str:
        return f"Headers({list(self.items())!r})"
