import collections.abc
import enum
import os
import shutil
from typing import Any

from .base import InvalidArgumentError, StreamError
from .stream import READ_CHUNK_SIZE, Stream


class UploadError(enum.IntEnum):
    OK = 0
    INI_SIZE = 1
    FORM_SIZE = 2
    PARTIAL = 3
    NO_FILE = 4
    NO_TMP_DIR = 6
    CANT_WRITE = 7
    EXTENSION = 8


class UploadedFile:
    """A file received through a multipart form submission.

    ``file`` is either a path to the temporary upload or an already opened
    stream. The upload can be read through ``stream`` or moved once with
    ``move_to``.
    """

    __slots__ = ("__file", "__client_filename", "__client_media_type", "__size", "__error", "__stream", "__moved")

    def __init__(
        self,
        file: str | os.PathLike[str] | Stream,
        client_filename: str | None = None,
        client_media_type: str | None = None,
        size: int | None = None,
        error: int = UploadError.OK,
    ) -> None:
        try:
            upload_error = UploadError(error)
        except ValueError:
            raise InvalidArgumentError(f"Invalid upload error status {error!r}") from None

        self.__file = file
        self.__client_filename = client_filename
        self.__client_media_type = client_media_type
        self.__size = size
        self.__error = upload_error
        self.__stream: Stream | None = file if isinstance(file, Stream) else None
        self.__moved = False

    @staticmethod
    def parse(files: collections.abc.Mapping[str, Any]) -> dict[str, Any]:
        """Normalizes upload metadata into a tree of UploadedFile.

        Every upload is described by ``tmp_name``, ``name``, ``type``, ``size`` and
        ``error``. When a field holds several files each of those keys maps to a
        list (or a mapping) indexed per file.
        """
        parsed: dict[str, Any] = {}
        for field, upload in files.items():
            normalized = _normalize(upload)
            if normalized is not None:
                parsed[field] = normalized
        return parsed

    @property
    def file(self) -> str | os.PathLike[str] | Stream:
        return self.__file

    @property
    def client_filename(self) -> str | None:
        return self.__client_filename

    @property
    def client_media_type(self) -> str | None:
        return self.__client_media_type

    @property
    def size(self) -> int | None:
        return self.__size

    @property
    def error(self) -> UploadError:
        return self.__error

    @property
    def is_moved(self) -> bool:
        return self.__moved

    @property
    def stream(self) -> Stream:
        self.__ensure_available()
        if self.__stream is None:
            try:
                self.__stream = Stream(open(self.__file, "rb"))  # type: ignore[arg-type]
            except OSError as e:
                raise StreamError(f"Uploaded file {self.__file} cannot be opened") from e
        return self.__stream

    def move_to(self, target_path: str | os.PathLike[str]) -> None:
        self.__ensure_available()
        if not target_path:
            raise InvalidArgumentError("Invalid path provided for move operation; must be a non-empty string")

        if isinstance(self.__file, Stream):
            source = self.__file
            if source.is_seekable():
                source.rewind()
            try:
                with open(target_path, "wb") as target:
                    while chunk := source.read(READ_CHUNK_SIZE):
                        target.write(chunk)
            except OSError as e:
                raise StreamError(f"Uploaded file cannot be written to {target_path}") from e
            source.close()
        else:
            if self.__stream is not None:
                self.__stream.close()
            try:
                shutil.move(self.__file, target_path)
            except OSError as e:
                raise StreamError(f"Uploaded file {self.__file} cannot be moved to {target_path}") from e

        self.__stream = None
        self.__moved = True

    def __ensure_available(self) -> None:
        if self.__error != UploadError.OK:
            raise StreamError(f"Cannot retrieve stream due to upload error {self.__error.name}")
        if self.__moved:
            raise StreamError("Uploaded file has already been moved")

    def __repr__(self) -> str:
        return f"<UploadedFile [{self.__client_filename!r} {self.__error.name}]>"


def _normalize(upload: Any) -> Any:
    if isinstance(upload, UploadedFile):
        return upload

    if isinstance(upload, collections.abc.Mapping):
        if "error" not in upload:
            return UploadedFile.parse(upload)

        error = upload["error"]
        if isinstance(error, collections.abc.Mapping):
            return {index: _normalize(_pick(upload, index)) for index in error}
        if isinstance(error, list | tuple):
            return [_normalize(_pick(upload, index)) for index in range(len(error))]

        return UploadedFile(
            upload.get("tmp_name", ""),
            client_filename=upload.get("name"),
            client_media_type=upload.get("type"),
            size=_to_size(upload.get("size")),
            error=int(error),
        )

    if isinstance(upload, list | tuple):
        return [item for item in (_normalize(item) for item in upload) if item is not None]

    return None


def _pick(upload: collections.abc.Mapping[str, Any], index: Any) -> dict[str, Any]:
    picked = {}
    for key in ("tmp_name", "name", "type", "size", "error"):
        values = upload.get(key)
        if isinstance(values, collections.abc.Mapping):
            picked[key] = values.get(index)
        elif isinstance(values, list | tuple) and isinstance(index, int) and index < len(values):
            picked[key] = values[index]
    return picked


def _to_size(size: Any) -> int | None:
    if size is None or size == "":
        return None
    return int(size)
