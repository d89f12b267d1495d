"""
Core data structures for Strix request handling.

Provides:
- ParameterSpace: Ordered multi-value mapping for merged request parameters
- Headers: Case-insensitive header access
- ParsedContentType: Content-Type parsing helper
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import (
    Dict, Iterator, List, Mapping, MutableMapping,
    Optional, Tuple, Union
)


_INT_RE = re.compile(r"[+-]?[0-9]+")


# ============================================================================
# ParameterSpace
# ============================================================================

class ParameterSpace(MutableMapping[str, List[str]]):
    """
    Dictionary that supports multiple values per key.

    Holds every parameter value known for a request: form body, query
    string and route path variables. ``add`` never replaces an existing
    value, it appends, so the first value added for a key is the one
    ``get`` returns.
    """

    def __init__(self, items: Optional[Union[List[Tuple[str, str]], Mapping[str, Union[str, List[str]]]]] = None):
        self._data: Dict[str, List[str]] = {}

        if items:
            if isinstance(items, list):
                for key, value in items:
                    self.add(key, value)
            elif isinstance(items, Mapping):
                for key, value in items.items():
                    if isinstance(value, list):
                        self._data[key] = value.copy()
                    else:
                        self._data[key] = [value]

    def __getitem__(self, key: str) -> List[str]:
        """Get all values for a key."""
        return self._data[key]

    def __setitem__(self, key: str, value: Union[str, List[str]]) -> None:
        """Set values for a key (replaces existing)."""
        if isinstance(value, list):
            self._data[key] = value
        else:
            self._data[key] = [value]

    def __delitem__(self, key: str) -> None:
        """Delete all values for a key."""
        del self._data[key]

    def __iter__(self) -> Iterator[str]:
        """Iterate over keys."""
        return iter(self._data)

    def __len__(self) -> int:
        """Number of keys."""
        return len(self._data)

    def __repr__(self) -> str:
        return f"ParameterSpace({dict(self._data)})"

    def add(self, key: str, value: str) -> None:
        """Add a value to a key (appends to list)."""
        if key in self._data:
            self._data[key].append(value)
        else:
            self._data[key] = [value]

    def get(self, key: str, default: str = "") -> str:
        """
        Get first value for a key.

        Returns ``default`` (empty string) when the key is absent or has
        no values, so callers cannot tell "absent" from "empty" here;
        use ``key in space`` or ``get_all`` for presence checks.
        """
        values = self._data.get(key)
        return values[0] if values else default

    def get_int(self, key: str) -> int:
        """
        Get first value for a key as a base-10 integer.

        Returns 0 when the key is absent or the value does not parse.
        """
        value = self.get(key)
        if not _INT_RE.fullmatch(value):
            return 0
        return int(value, 10)

    def get_all(self, key: str) -> List[str]:
        """Get a copy of all values for a key."""
        return list(self._data.get(key, ()))

    def items_list(self) -> List[Tuple[str, str]]:
        """Return all items as flat list of tuples."""
        result = []
        for key, values in self._data.items():
            for value in values:
                result.append((key, value))
        return result

    def to_dict(self, multi: bool = False) -> Dict[str, Union[str, List[str]]]:
        """
        Convert to regular dict.

        Args:
            multi: If True, return lists for all keys.
                   If False, return first value only.
        """
        if multi:
            return {k: list(v) for k, v in self._data.items()}
        return {k: v[0] for k, v in self._data.items() if v}


# ============================================================================
# Headers
# ============================================================================

@dataclass
class Headers:
    """
    Case-insensitive header access with raw preservation.

    Normalizes header names while preserving original casing.
    """

    raw: List[Tuple[bytes, bytes]] = field(default_factory=list)
    _index: Dict[str, List[Tuple[bytes, bytes]]] = field(default_factory=dict, init=False, repr=False)

    def __post_init__(self):
        """Build case-insensitive index."""
        self._index = {}
        for name, value in self.raw:
            key = name.decode("latin-1").lower()
            self._index.setdefault(key, []).append((name, value))

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Get first value for header (case-insensitive)."""
        pairs = self._index.get(name.lower())
        if pairs:
            return pairs[0][1].decode("latin-1")
        return default

    def get_all(self, name: str) -> List[str]:
        """Get all values for header (case-insensitive)."""
        pairs = self._index.get(name.lower(), [])
        return [value.decode("latin-1") for _, value in pairs]

    def has(self, name: str) -> bool:
        """Check if header exists."""
        return name.lower() in self._index

    def items(self) -> Iterator[Tuple[str, str]]:
        """Iterate over all headers."""
        for name, value in self.raw:
            yield name.decode("latin-1"), value.decode("latin-1")

    def __contains__(self, name: str) -> bool:
        return self.has(name)

    def __getitem__(self, name: str) -> str:
        """Get header value (raises KeyError if not found)."""
        value = self.get(name)
        if value is None:
            raise KeyError(f"Header '{name}' not found")
        return value

    def __repr__(self) -> str:
        return f"Headers({list(self.items())})"


# ============================================================================
# ParsedContentType
# ============================================================================

@dataclass
class ParsedContentType:
    """
    Parsed Content-Type header.

    Extracts media type and parameters (e.g., charset, boundary).
    """

    media_type: str
    params: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def parse(cls, content_type: Optional[str]) -> Optional["ParsedContentType"]:
        """Parse Content-Type header."""
        if not content_type:
            return None

        parts = content_type.split(";")
        media_type = parts[0].strip().lower()

        params = {}
        for part in parts[1:]:
            if "=" in part:
                key, value = part.split("=", 1)
                params[key.strip().lower()] = value.strip().strip('"')

        return cls(media_type=media_type, params=params)

    @property
    def charset(self) -> str:
        """Get charset parameter (default: utf-8)."""
        return self.params.get("charset", "utf-8")

    @property
    def boundary(self) -> Optional[str]:
        """Get boundary parameter (for multipart)."""
        return self.params.get("boundary")
