import collections.abc
import re
from typing import Any, NamedTuple

import multidict

from .base import InvalidArgumentError

# CGI/1.1 passes these without the HTTP_ prefix
SPECIAL_VARIABLES = frozenset(
    (
        "CONTENT_TYPE",
        "CONTENT_LENGTH",
        "PHP_AUTH_USER",
        "PHP_AUTH_PW",
        "PHP_AUTH_DIGEST",
        "AUTH_TYPE",
    )
)

_blank_line_re = re.compile(r"^\r?\n", re.RegexFlag.MULTILINE)
_continuation_re = re.compile(r"\r?\n[ \t]+")
_header_line_re = re.compile(r"^([^:\s]+):[ \t]*(.*?)[ \t]*\r?$", re.RegexFlag.MULTILINE)

HeaderValue = str | collections.abc.Iterable[str]


class _Row(NamedTuple):
    original_key: str
    values: list[str]


class Headers:
    """Case-insensitive collection of HTTP headers.

    Names are matched after normalization (lower case, ``_`` read as ``-``,
    a leading ``http-`` dropped) so ``Content-Type``, ``content_type`` and
    ``HTTP_CONTENT_TYPE`` address the same header. The name given to the most
    recent ``set`` is kept for output. Every header holds a list of values.
    """

    __slots__ = ("__rows",)

    def __init__(self, items: collections.abc.Mapping[str, Any] | None = None) -> None:
        self.__rows: dict[str, _Row] = {}
        if items is not None:
            for name, value in items.items():
                self.set(name, value)

    @classmethod
    def parse(cls, headers: str | bytes | collections.abc.Mapping[str, Any]) -> "Headers":
        """Builds headers from a raw header block or from CGI style variables."""
        collection = cls()
        if isinstance(headers, bytes):
            headers = headers.decode("latin-1")

        if isinstance(headers, str):
            headers = _blank_line_re.sub("", headers)
            headers = _continuation_re.sub(" ", headers)
            for name, value in _header_line_re.findall(headers):
                collection.add(name, value)
        elif isinstance(headers, collections.abc.Mapping):
            for key, value in headers.items():
                if not isinstance(key, str):
                    continue
                key = key.upper()
                if key == "HTTP_CONTENT_LENGTH":
                    continue
                if key in SPECIAL_VARIABLES or key.startswith("HTTP_"):
                    name = "-".join(part.capitalize() for part in cls.normalize_key(key).split("-"))
                    collection.set(name, value if isinstance(value, str | list) else str(value))

        return collection

    @staticmethod
    def normalize_key(key: str) -> str:
        key = key.lower().replace("_", "-")
        if key.startswith("http-"):
            key = key[5:]
        return key

    def set(self, key: str, value: HeaderValue) -> None:
        values = _to_values(value)
        self.__rows[self.normalize_key(key)] = _Row(key, values)

    def get(self, key: str, default: Any = None) -> list[str] | Any:
        row = self.__rows.get(self.normalize_key(key))
        if row is None:
            return default
        return list(row.values)

    def get_original_key(self, key: str, default: Any = None) -> str | Any:
        row = self.__rows.get(self.normalize_key(key))
        if row is None:
            return default
        return row.original_key

    def add(self, key: str, value: HeaderValue) -> None:
        new_values = _to_values(value)
        normalized_key = self.normalize_key(key)
        row = self.__rows.get(normalized_key)
        if row is None:
            self.__rows[normalized_key] = _Row(key, new_values)
        else:
            self.__rows[normalized_key] = _Row(key, [*row.values, *new_values])

    def has(self, key: str) -> bool:
        return self.normalize_key(key) in self.__rows

    def remove(self, key: str) -> None:
        self.__rows.pop(self.normalize_key(key), None)

    def all(self) -> dict[str, list[str]]:
        return {row.original_key: list(row.values) for row in self.__rows.values()}

    def to_header_lines(self) -> list[str]:
        return [f"{row.original_key}: {'; '.join(row.values)}" for row in self.__rows.values()]

    def to_multidict(self) -> multidict.CIMultiDictProxy[str]:
        items = multidict.CIMultiDict[str]()
        for row in self.__rows.values():
            for value in row.values:
                items.add(row.original_key, value)
        return multidict.CIMultiDictProxy[str](items)

    def copy(self) -> "Headers":
        clone = Headers()
        for normalized_key, row in self.__rows.items():
            clone.__rows[normalized_key] = _Row(row.original_key, list(row.values))
        return clone

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.has(key)

    def __iter__(self) -> collections.abc.Iterator[str]:
        return iter([row.original_key for row in self.__rows.values()])

    def __len__(self) -> int:
        return len(self.__rows)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Headers):
            return NotImplemented
        return self.all() == other.all()

    def __repr__(self) -> str:
        return f"<Headers {self.all()!r}>"


def _to_values(value: Any) -> list[str]:
    if isinstance(value, str):
        return [value]
    if not isinstance(value, collections.abc.Iterable):
        raise InvalidArgumentError(f"Header value must be a string or a list of strings, got {type(value).__name__}")
    values = list(value)
    if not all(isinstance(item, str) for item in values):
        raise InvalidArgumentError("Header values must be strings")
    return values
