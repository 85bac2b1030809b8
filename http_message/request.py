import collections.abc
import json
from typing import Any

import yarl

from .base import Header, MediaType, Method
from .client import ClientRequest
from .headers import HeaderValue, Headers
from .message import filter_headers
from .stream import Body, Stream
from .uri import URI
from .utils import QueryParameters, build_query_parameters

RequestHeaders = Headers | collections.abc.Mapping[str, HeaderValue]
RequestBody = bytes | str | Stream


def connect(uri: URI | str, *, headers: RequestHeaders | None = None, **options: Any) -> ClientRequest:
    return request(Method.CONNECT, uri, headers=headers, **options)


def delete(
    uri: URI | str,
    *,
    headers: RequestHeaders | None = None,
    query_parameters: QueryParameters | None = None,
    **options: Any,
) -> ClientRequest:
    return request(Method.DELETE, uri, headers=headers, query_parameters=query_parameters, **options)


def get(
    uri: URI | str,
    *,
    headers: RequestHeaders | None = None,
    query_parameters: QueryParameters | None = None,
    **options: Any,
) -> ClientRequest:
    return request(Method.GET, uri, headers=headers, query_parameters=query_parameters, **options)


def head(
    uri: URI | str,
    *,
    headers: RequestHeaders | None = None,
    query_parameters: QueryParameters | None = None,
    **options: Any,
) -> ClientRequest:
    return request(Method.HEAD, uri, headers=headers, query_parameters=query_parameters, **options)


def options(uri: URI | str, *, headers: RequestHeaders | None = None, **options: Any) -> ClientRequest:
    return request(Method.OPTIONS, uri, headers=headers, **options)


def patch(
    uri: URI | str,
    body: RequestBody | None = None,
    *,
    headers: RequestHeaders | None = None,
    query_parameters: QueryParameters | None = None,
    **options: Any,
) -> ClientRequest:
    return request(Method.PATCH, uri, headers=headers, body=body, query_parameters=query_parameters, **options)


def post(
    uri: URI | str,
    body: RequestBody | None = None,
    *,
    headers: RequestHeaders | None = None,
    query_parameters: QueryParameters | None = None,
    **options: Any,
) -> ClientRequest:
    return request(Method.POST, uri, headers=headers, body=body, query_parameters=query_parameters, **options)


def put(
    uri: URI | str,
    body: RequestBody | None = None,
    *,
    headers: RequestHeaders | None = None,
    query_parameters: QueryParameters | None = None,
    **options: Any,
) -> ClientRequest:
    return request(Method.PUT, uri, headers=headers, body=body, query_parameters=query_parameters, **options)


def trace(uri: URI | str, *, headers: RequestHeaders | None = None, **options: Any) -> ClientRequest:
    return request(Method.TRACE, uri, headers=headers, **options)


def post_json(uri: URI | str, data: Any, **options: Any) -> ClientRequest:
    return request_json(Method.POST, uri, data, **options)


def put_json(uri: URI | str, data: Any, **options: Any) -> ClientRequest:
    return request_json(Method.PUT, uri, data, **options)


def patch_json(uri: URI | str, data: Any, **options: Any) -> ClientRequest:
    return request_json(Method.PATCH, uri, data, **options)


def request_json(
    method: str,
    uri: URI | str,
    data: Any,
    *,
    headers: RequestHeaders | None = None,
    query_parameters: QueryParameters | None = None,
    encoding: str = "utf-8",
    dumps: collections.abc.Callable[[Any], str] = json.dumps,
    content_type: str = MediaType.JSON,
    **options: Any,
) -> ClientRequest:
    enriched_headers = filter_headers(headers)
    enriched_headers.set(Header.CONTENT_TYPE, content_type)

    return request(
        method,
        uri,
        headers=enriched_headers,
        body=Body.from_bytes(dumps(data).encode(encoding)),
        query_parameters=query_parameters,
        **options,
    )


def request_form(
    method: str,
    uri: URI | str,
    data: QueryParameters,
    *,
    headers: RequestHeaders | None = None,
    query_parameters: QueryParameters | None = None,
    **options: Any,
) -> ClientRequest:
    enriched_headers = filter_headers(headers)
    enriched_headers.set(Header.CONTENT_TYPE, MediaType.FORM)

    return request(
        method,
        uri,
        headers=enriched_headers,
        body=Body.from_query(data),
        query_parameters=query_parameters,
        **options,
    )


def request(
    method: str,
    uri: URI | str,
    *,
    headers: RequestHeaders | None = None,
    body: RequestBody | None = None,
    query_parameters: QueryParameters | None = None,
    user_agent: str | None = None,
    referer: str | None = None,
    cookie_file: str | None = None,
    redirect_limit: int = 0,
) -> ClientRequest:
    uri = URI.parse(uri)
    if query_parameters is not None:
        encoded = yarl.URL.build(query=build_query_parameters(query_parameters)).raw_query_string
        uri = uri.with_query("&".join(query for query in (uri.query, encoded) if query))

    if body is not None and not isinstance(body, Stream):
        body = Body.from_bytes(body)

    return ClientRequest(
        method,
        uri,
        headers,
        body,
        user_agent=user_agent,
        referer=referer,
        cookie_file=cookie_file,
        redirect_limit=redirect_limit,
    )
