import collections.abc
import re
import urllib.parse
from typing import Any

import multidict
import yarl

QueryParameters = (
    collections.abc.Mapping[str, Any]
    | collections.abc.Iterable[tuple[str, Any]]
    | multidict.MultiDictProxy[str]
    | multidict.CIMultiDictProxy[str]
)

_nested_name_re = re.compile(r"^(?P<name>[^\[\]]+)(?P<keys>(?:\[[^\[\]]*\])+)$")
_nested_key_re = re.compile(r"\[([^\[\]]*)\]")
_cookie_separator_re = re.compile(r"\s*[;,]\s*")


def build_query_parameters(query_parameters: QueryParameters) -> dict[str, str | list[str]]:
    parameters: dict[str, str | list[str]] = {}
    for name, value in (
        query_parameters.items() if isinstance(query_parameters, collections.abc.Mapping) else query_parameters
    ):
        if value is None:
            continue
        if not isinstance(value, str) and isinstance(value, collections.abc.Iterable):
            values = [str(v) for v in value if v is not None]
            if not values:
                continue

            if name in parameters:
                existing_value = parameters[name]
                if isinstance(existing_value, str):
                    parameters[name] = [existing_value, *values]
                else:
                    parameters[name] = [*existing_value, *values]
            else:
                parameters[name] = values
        else:
            if name in parameters:
                existing_value = parameters[name]
                if isinstance(existing_value, str):
                    parameters[name] = [existing_value, str(value)]
                else:
                    parameters[name] = [*existing_value, str(value)]
            else:
                parameters[name] = str(value)
    return parameters


def parse_query_string(query: str) -> dict[str, Any]:
    """Decodes a query string, expanding bracketed names into nested values.

    ``a=1&b[]=2&b[]=3&c[x][y]=4`` gives ``{"a": "1", "b": ["2", "3"], "c": {"x": {"y": "4"}}}``.
    Containers whose keys are exactly ``0..n-1`` become lists; a repeated plain
    name keeps its last value.
    """
    result: dict[Any, Any] = {}
    if not query:
        return result

    pairs = yarl.URL.build(query_string=query.lstrip("?"), encoded=True).query
    for name, value in pairs.items():
        match = _nested_name_re.match(name)
        if match is None:
            result[name] = value
            continue
        _assign(result, [match.group("name"), *_nested_key_re.findall(match.group("keys"))], value)

    return _listify(result)


def parse_cookie_header(header: str | collections.abc.Iterable[str]) -> dict[str, str]:
    """Parses ``name=value; name2=value2`` pairs; values are percent-decoded and the first occurrence wins."""
    if not isinstance(header, str):
        header = "; ".join(header)

    cookies: dict[str, str] = {}
    for pair in _cookie_separator_re.split(header.strip()):
        name, separator, value = pair.partition("=")
        if not separator:
            continue
        name = urllib.parse.unquote_plus(name.strip())
        if name and name not in cookies:
            cookies[name] = urllib.parse.unquote_plus(value.strip())
    return cookies


def _assign(container: dict[Any, Any], keys: list[str], value: str) -> None:
    last = len(keys) - 1
    for index, key in enumerate(keys):
        item_key: str | int
        if index == 0:
            item_key = key
        elif key == "":
            item_key = _next_index(container)
        elif key.isdigit():
            item_key = int(key)
        else:
            item_key = key

        if index == last:
            container[item_key] = value
            return

        child = container.get(item_key)
        if not isinstance(child, dict):
            child = {}
            container[item_key] = child
        container = child


def _next_index(container: dict[Any, Any]) -> int:
    indexes = [key for key in container if isinstance(key, int)]
    return max(indexes) + 1 if indexes else 0


def _listify(value: Any) -> Any:
    if not isinstance(value, dict):
        return value
    converted = {key: _listify(item) for key, item in value.items()}
    indexes = list(range(len(converted)))
    if converted and all(isinstance(key, int) for key in converted) and sorted(converted) == indexes:
        return [converted[index] for index in indexes]
    return converted
