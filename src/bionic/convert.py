from __future__ import annotations

import asyncio
import threading
from functools import partial
from pathlib import Path, PurePath
from typing import Callable

from .config import DEFAULT_OPTIONS, ConversionOptions
from .container import EpubContainer
from .logging_utils import debug_log
from .transform import ParseError

OUTPUT_SUFFIX = "_bionic"
ProgressCallback = Callable[[dict[str, object]], None]


class ConversionCancelled(RuntimeError):
    pass


def suggest_output_name(filename: str | None) -> str:
    """Name for the converted copy of ``filename`` (``book.epub`` -> ``book_bionic.epub``)."""
    name = PurePath(filename or "").name.strip()
    stem = PurePath(name).stem if name.lower().endswith(".epub") else name
    stem = stem.strip() or "book"
    return f"{stem}{OUTPUT_SUFFIX}.epub"


def _check_cancelled(cancel_event: threading.Event | None) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise ConversionCancelled("Conversion cancelled.")


def transform_members(
    container: EpubContainer,
    options: ConversionOptions = DEFAULT_OPTIONS,
    *,
    progress: ProgressCallback | None = None,
    cancel_event: threading.Event | None = None,
) -> int:
    """
    Rewrite every textual member of ``container`` in place.

    Returns the number of emphasized words. Members are processed one at a
    time; cancellation is only honoured between members so no document is
    left half-rewritten.
    """
    transformer = options.build_transformer()
    documents = container.members(options.suffixes)
    total = len(documents)
    if progress:
        progress({"event": "convert_start", "total": total})
    debug_log(f"Transforming {total} of {len(container)} member(s)")
    total_words = 0
    for index, member in enumerate(documents, start=1):
        _check_cancelled(cancel_event)
        if progress:
            progress({"event": "member_start", "path": member.path, "index": index, "total": total})
        markup = member.text()
        try:
            result = transformer.transform_with_stats(markup, path=member.path)
        except ParseError as exc:
            raise ParseError(str(exc), path=member.path) from exc
        container.set(member.path, result.markup)
        total_words += result.words
        debug_log(f"{member.path}: emphasized {result.words} word(s)")
        if progress:
            progress(
                {
                    "event": "member_done",
                    "path": member.path,
                    "index": index,
                    "total": total,
                    "words": result.words,
                }
            )
    if progress:
        progress({"event": "convert_done", "total": total, "words": total_words})
    return total_words


def convert(
    data: bytes,
    options: ConversionOptions | None = None,
    *,
    progress: ProgressCallback | None = None,
    cancel_event: threading.Event | None = None,
) -> bytes:
    """Convert EPUB bytes to bionic-reading EPUB bytes."""
    options = options or DEFAULT_OPTIONS
    container = EpubContainer()
    container.load(data, workers=options.workers)
    transform_members(container, options, progress=progress, cancel_event=cancel_event)
    _check_cancelled(cancel_event)
    return container.pack()


async def convert_async(
    data: bytes,
    options: ConversionOptions | None = None,
    *,
    progress: ProgressCallback | None = None,
    cancel_event: threading.Event | None = None,
) -> bytes:
    options = options or DEFAULT_OPTIONS
    loop = asyncio.get_running_loop()
    container = EpubContainer()
    await loop.run_in_executor(None, partial(container.load, data, workers=options.workers))
    _check_cancelled(cancel_event)

    def work() -> int:
        return transform_members(container, options, progress=progress, cancel_event=cancel_event)

    await loop.run_in_executor(None, work)
    _check_cancelled(cancel_event)
    return await loop.run_in_executor(None, container.pack)


def convert_file(
    source: Path,
    output: Path | None = None,
    options: ConversionOptions | None = None,
    *,
    progress: ProgressCallback | None = None,
) -> Path:
    if output is None:
        output = source.with_name(suggest_output_name(source.name))
    if output.resolve() == source.resolve():
        raise ValueError(f"Output would overwrite the input EPUB: {source}")
    converted = convert(source.read_bytes(), options, progress=progress)
    output.write_bytes(converted)
    return output


__all__ = [
    "ConversionCancelled",
    "OUTPUT_SUFFIX",
    "ProgressCallback",
    "convert",
    "convert_async",
    "convert_file",
    "suggest_output_name",
    "transform_members",
]
