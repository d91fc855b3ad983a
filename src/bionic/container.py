from __future__ import annotations

import io
import zipfile
import zlib
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Iterator

from .logging_utils import debug_log

MIMETYPE_PATH = "mimetype"
EPUB_MIMETYPE = "application/epub+zip"
_DEFAULT_DATE_TIME = (1980, 1, 1, 0, 0, 0)


class ContainerFormatError(RuntimeError):
    """Raised when the archive cannot be read or written."""


class EncodingError(RuntimeError):
    """Raised when a member payload is not valid UTF-8 text."""

    def __init__(self, message: str, *, path: str | None = None) -> None:
        self.path = path
        if path:
            message = f"{path}: {message}"
        super().__init__(message)


@dataclass
class ContainerMember:
    path: str
    payload: bytes | str
    date_time: tuple[int, int, int, int, int, int] | None = None

    def data(self) -> bytes:
        if isinstance(self.payload, str):
            return self.payload.encode("utf-8")
        return self.payload

    def text(self) -> str:
        if isinstance(self.payload, str):
            return self.payload
        try:
            return self.payload.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise EncodingError(f"Not valid UTF-8 text ({exc.reason} at byte {exc.start})", path=self.path) from exc


def _read_entries(
    zf: zipfile.ZipFile,
    infos: list[zipfile.ZipInfo],
    workers: int | None,
) -> list[bytes]:
    if workers is None or workers <= 1 or len(infos) <= 1:
        return [zf.read(info) for info in infos]
    # ZipFile serializes access to the underlying buffer; decompression runs per entry.
    with ThreadPoolExecutor(max_workers=workers) as pool:
        return list(pool.map(zf.read, infos))


class EpubContainer:
    """
    In-memory view of an EPUB archive keyed by member path.

    Members keep the order in which they were loaded or inserted. When the
    container is packed the ``mimetype`` entry is written first and stored
    without compression, as EPUB readers and validators require.
    """

    def __init__(self) -> None:
        self._members: dict[str, ContainerMember] = {}

    def __contains__(self, path: object) -> bool:
        return path in self._members

    def __len__(self) -> int:
        return len(self._members)

    def __iter__(self) -> Iterator[ContainerMember]:
        return iter(list(self._members.values()))

    @classmethod
    def from_bytes(cls, data: bytes, *, workers: int | None = None) -> "EpubContainer":
        container = cls()
        container.load(data, workers=workers)
        return container

    def load(self, data: bytes, *, workers: int | None = None) -> None:
        try:
            with zipfile.ZipFile(io.BytesIO(data), "r") as zf:
                infos = [info for info in zf.infolist() if not info.is_dir()]
                payloads = _read_entries(zf, infos, workers)
        except (zipfile.BadZipFile, zipfile.LargeZipFile, zlib.error, NotImplementedError, EOFError) as exc:
            raise ContainerFormatError(f"Invalid EPUB archive: {exc}") from exc
        except (OSError, ValueError, RuntimeError) as exc:
            # RuntimeError covers encrypted entries.
            raise ContainerFormatError(f"Unable to read EPUB archive: {exc}") from exc
        members: dict[str, ContainerMember] = {}
        for info, payload in zip(infos, payloads):
            members[info.filename] = ContainerMember(
                path=info.filename,
                payload=payload,
                date_time=tuple(info.date_time),
            )
        self._members = members
        debug_log(f"Loaded {len(members)} member(s) from {len(data)} byte archive")

    def get(self, path: str) -> ContainerMember | None:
        return self._members.get(path)

    def set(self, path: str, payload: bytes | str) -> None:
        member = self._members.get(path)
        if member is None:
            self._members[path] = ContainerMember(path=path, payload=payload)
        else:
            member.payload = payload

    def paths(self) -> list[str]:
        return list(self._members)

    def members(self, suffix: str | tuple[str, ...] | None = None) -> list[ContainerMember]:
        if not suffix:
            return list(self._members.values())
        return [member for member in self._members.values() if member.path.endswith(suffix)]

    def pack(self) -> bytes:
        buffer = io.BytesIO()
        ordered = list(self._members.values())
        mimetype = self._members.get(MIMETYPE_PATH)
        if mimetype is not None:
            ordered.remove(mimetype)
            ordered.insert(0, mimetype)
        try:
            with zipfile.ZipFile(buffer, "w") as zf:
                for member in ordered:
                    info = zipfile.ZipInfo(member.path, date_time=member.date_time or _DEFAULT_DATE_TIME)
                    if member is mimetype:
                        info.compress_type = zipfile.ZIP_STORED
                    else:
                        info.compress_type = zipfile.ZIP_DEFLATED
                    info.external_attr = 0o644 << 16
                    zf.writestr(info, member.data())
        except (OSError, ValueError, zlib.error) as exc:
            raise ContainerFormatError(f"Unable to write EPUB archive: {exc}") from exc
        packed = buffer.getvalue()
        debug_log(f"Packed {len(ordered)} member(s) into {len(packed)} bytes")
        return packed


__all__ = [
    "ContainerFormatError",
    "ContainerMember",
    "EPUB_MIMETYPE",
    "EncodingError",
    "EpubContainer",
    "MIMETYPE_PATH",
]
