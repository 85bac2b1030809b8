import io
import json
import os
import tempfile
from typing import IO, Any

import yarl

from .base import StreamError
from .utils import QueryParameters, build_query_parameters

SPOOL_MAX_SIZE = 2 * 1024 * 1024
READ_CHUNK_SIZE = 64 * 1024


class Stream:
    """Byte stream over a binary file object.

    All operations raise StreamError once the stream has been closed or
    detached, or when the underlying file object does not support them.
    """

    __slots__ = ("__handle", "__eof")

    def __init__(self, handle: IO[bytes]) -> None:
        if handle is None or not hasattr(handle, "read") and not hasattr(handle, "write"):
            raise StreamError("Stream handle must be a binary file object")
        self.__handle: IO[bytes] | None = handle
        self.__eof = False

    @property
    def attached(self) -> bool:
        return self.__handle is not None and not self.__handle.closed

    def detach(self) -> IO[bytes] | None:
        handle = self.__handle
        self.__handle = None
        self.__eof = False
        return handle

    def close(self) -> None:
        handle = self.detach()
        if handle is not None:
            handle.close()

    def get_size(self) -> int | None:
        if not self.attached:
            return None
        handle = self.__attached_handle()
        if handle.seekable():
            position = handle.tell()
            handle.seek(0, os.SEEK_END)
            size = handle.tell()
            handle.seek(position)
            return size
        try:
            return os.fstat(handle.fileno()).st_size
        except (AttributeError, OSError, io.UnsupportedOperation):
            return None

    def tell(self) -> int:
        handle = self.__attached_handle()
        try:
            return handle.tell()
        except (OSError, io.UnsupportedOperation) as e:
            raise StreamError("Unable to determine position of pointer in stream") from e

    def eof(self) -> bool:
        if not self.attached:
            return True
        handle = self.__attached_handle()
        if handle.seekable():
            return handle.tell() >= (self.get_size() or 0)
        return self.__eof

    def is_seekable(self) -> bool:
        return self.attached and self.__attached_handle().seekable()

    def seek(self, offset: int, whence: int = os.SEEK_SET) -> None:
        if not self.is_seekable():
            raise StreamError("Could not seek in stream")
        self.__attached_handle().seek(offset, whence)
        self.__eof = False

    def rewind(self) -> None:
        if not self.is_seekable():
            raise StreamError("Could not rewind stream")
        self.seek(0)

    def is_writable(self) -> bool:
        return self.attached and self.__attached_handle().writable()

    def write(self, data: bytes | str) -> int:
        if not self.is_writable():
            raise StreamError("Could not write to stream")
        if isinstance(data, str):
            data = data.encode("utf-8")
        written = self.__attached_handle().write(data)
        return len(data) if written is None else written

    def is_readable(self) -> bool:
        return self.attached and self.__attached_handle().readable()

    def read(self, length: int) -> bytes:
        if not self.is_readable():
            raise StreamError("Could not read from stream")
        data = self.__attached_handle().read(length) or b""
        if length > 0 and len(data) < length:
            self.__eof = True
        return data

    def get_contents(self) -> bytes:
        if not self.is_readable():
            raise StreamError("Could not get contents of stream")
        data = self.__attached_handle().read() or b""
        self.__eof = True
        return data

    def get_payload(self) -> bytes:
        """Returns the whole contents, leaving the position untouched when the stream is seekable."""
        if not self.is_seekable():
            return self.get_contents()
        position = self.tell()
        self.rewind()
        try:
            return self.get_contents()
        finally:
            self.seek(position)

    def get_metadata(self, key: str | None = None) -> Any:
        handle = self.__attached_handle()
        metadata = {
            "mode": getattr(handle, "mode", None),
            "seekable": handle.seekable(),
            "uri": getattr(handle, "name", None),
            "eof": self.eof(),
        }
        if key is None:
            return metadata
        return metadata.get(key)

    def copy(self) -> "Body":
        """Returns an independent stream with the same contents and position."""
        if not self.is_readable() or not self.is_seekable():
            raise StreamError("Could not copy stream")
        position = self.tell()
        clone = Body()
        self.rewind()
        while chunk := self.read(READ_CHUNK_SIZE):
            clone.write(chunk)
        self.seek(position)
        clone.seek(position)
        return clone

    def __bytes__(self) -> bytes:
        if not self.attached:
            return b""
        if self.is_seekable():
            self.rewind()
        return self.get_contents()

    def __str__(self) -> str:
        return bytes(self).decode("utf-8", errors="replace")

    def __repr__(self) -> str:
        if not self.attached:
            return "<Stream [detached]>"
        return f"<Stream [size={self.get_size()}]>"

    def __attached_handle(self) -> IO[bytes]:
        handle = self.__handle
        if handle is None or handle.closed:
            raise StreamError("Stream is detached")
        return handle


class Body(Stream):
    """Read/write buffer held in memory and spooled to a temporary file when it grows."""

    __slots__ = ()

    def __init__(self, handle: IO[bytes] | None = None) -> None:
        if handle is None:
            handle = tempfile.SpooledTemporaryFile(max_size=SPOOL_MAX_SIZE, mode="w+b")
        super().__init__(handle)

    @staticmethod
    def from_bytes(data: bytes | str) -> "Body":
        body = Body()
        body.write(data)
        body.rewind()
        return body

    @staticmethod
    def from_json(data: Any, *, encoding: str = "utf-8") -> "Body":
        body = Body()
        body.write(json.dumps(data).encode(encoding))
        body.rewind()
        return body

    @staticmethod
    def from_query(data: QueryParameters) -> "Body":
        body = Body()
        body.write(yarl.URL.build(query=build_query_parameters(data)).raw_query_string)
        body.rewind()
        return body
