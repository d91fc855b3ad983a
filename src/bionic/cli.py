from __future__ import annotations

import argparse
import sys
from dataclasses import replace
from pathlib import Path

import uvicorn
from rich.console import Console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    TextColumn,
    TimeElapsedColumn,
)

from .branding import __version__
from .config import CONFIG_FILENAME, ConfigError, ConversionOptions, load_config
from .container import ContainerFormatError, EncodingError
from .convert import OUTPUT_SUFFIX, ProgressCallback, convert_file, suggest_output_name
from .logging_utils import set_debug_logging
from .transform import SUPPORTED_PARSERS, ParseError
from .web import WebConfig, create_app


def _add_version_flag(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-v",
        "--version",
        action="version",
        version=f"bionic {__version__}",
    )


def _add_option_flags(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config",
        help=f"TOML settings file. Defaults to {CONFIG_FILENAME} next to the input, if present.",
    )
    parser.add_argument(
        "--suffix",
        action="append",
        dest="suffixes",
        metavar="EXT",
        help="Member path suffix treated as a text document (repeatable, e.g. --suffix .xhtml).",
    )
    parser.add_argument(
        "--emphasis-tag",
        help="Element used to wrap the emphasized part of each word (default: b).",
    )
    parser.add_argument(
        "--parser",
        choices=SUPPORTED_PARSERS,
        help="BeautifulSoup tree builder used to read documents (default: auto, XML for XHTML members).",
    )
    parser.add_argument(
        "--max-full-length",
        type=int,
        help="Words up to this many characters are emphasized entirely (default: 3).",
    )
    parser.add_argument(
        "--workers",
        type=int,
        help="Threads used to read archive members (default: 1).",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Print per-document details while converting.",
    )


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        description="EPUB → Bionic Reading EPUB. Use `bionic web` for the upload page.",
    )
    _add_version_flag(ap)
    ap.add_argument(
        "input_path",
        help="Path to input .epub or a directory containing .epub files",
    )
    ap.add_argument(
        "-o",
        "--output-name",
        help=f"Optional name for the output .epub (same folder as input; default: <name>{OUTPUT_SUFFIX}.epub)",
    )
    _add_option_flags(ap)
    return ap


def build_web_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        description="Serve a small upload page that converts EPUB files in the browser.",
    )
    _add_version_flag(ap)
    ap.add_argument("--host", default="127.0.0.1", help="Interface to bind (default: 127.0.0.1).")
    ap.add_argument("--port", type=int, default=8000, help="Port to listen on (default: 8000).")
    ap.add_argument(
        "--max-upload-mb",
        type=int,
        default=200,
        help="Largest accepted upload in megabytes (default: 200).",
    )
    _add_option_flags(ap)
    return ap


def _resolve_options(args: argparse.Namespace, search_dir: Path | None) -> ConversionOptions:
    config_path: Path | None = None
    if args.config:
        config_path = Path(args.config).expanduser()
    elif search_dir is not None and (search_dir / CONFIG_FILENAME).is_file():
        config_path = search_dir / CONFIG_FILENAME
    try:
        options = load_config(config_path) if config_path is not None else ConversionOptions()
    except ConfigError as exc:
        raise SystemExit(str(exc)) from exc

    overrides: dict[str, object] = {}
    if args.suffixes:
        overrides["suffixes"] = tuple(args.suffixes)
    if args.emphasis_tag:
        overrides["emphasis_tag"] = args.emphasis_tag
    if args.parser:
        overrides["parser"] = args.parser
    if args.max_full_length is not None:
        if args.max_full_length < 0:
            raise SystemExit("--max-full-length must be non-negative.")
        overrides["max_full_length"] = args.max_full_length
    if args.workers is not None:
        if args.workers < 1:
            raise SystemExit("--workers must be at least 1.")
        overrides["workers"] = args.workers
    return replace(options, **overrides) if overrides else options


class _RichProgress:
    def __init__(self, console: Console, enabled: bool) -> None:
        self.console = console
        self.progress: Progress | None = None
        self.task = None
        if not enabled:
            return
        self.progress = Progress(
            TextColumn("{task.description}", justify="left"),
            BarColumn(bar_width=None),
            MofNCompleteColumn(),
            TimeElapsedColumn(),
            TextColumn("{task.fields[detail]}", justify="left"),
            console=console,
            transient=True,
        )

    @staticmethod
    def _truncate(text: str, width: int = 32) -> str:
        text = text.strip()
        if len(text) <= width:
            return text
        return "…" + text[-(width - 1) :]

    def __enter__(self) -> "_RichProgress":
        if self.progress is not None:
            self.progress.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        if self.progress is not None:
            self.progress.stop()

    def handler(self, label: str) -> ProgressCallback:
        def _handle(event: dict[str, object]) -> None:
            if self.progress is None:
                return
            event_type = event.get("event")
            if event_type == "convert_start":
                total = event.get("total")
                self.task = self.progress.add_task(
                    label,
                    total=total if isinstance(total, int) else None,
                    detail="",
                )
            elif event_type == "member_start" and self.task is not None:
                self.progress.update(self.task, detail=self._truncate(str(event.get("path") or "")))
            elif event_type == "member_done" and self.task is not None:
                self.progress.advance(self.task)
            elif event_type == "convert_done" and self.task is not None:
                self.progress.update(self.task, detail=f"{event.get('words', 0)} words")
                self.task = None

        return _handle


def _collect_inputs(inp_path: Path, output_name: str | None) -> list[tuple[Path, Path]]:
    if inp_path.is_dir():
        if output_name:
            raise ValueError("Output name cannot be used when processing a directory.")
        epubs = sorted(
            p
            for p in inp_path.iterdir()
            if p.suffix.lower() == ".epub" and not p.stem.endswith(OUTPUT_SUFFIX)
        )
        if not epubs:
            raise FileNotFoundError(f"No .epub files found in directory: {inp_path}")
        return [(p, p.with_name(suggest_output_name(p.name))) for p in epubs]

    if inp_path.suffix.lower() != ".epub":
        raise ValueError(f"Input must be an .epub file or directory: {inp_path}")
    if output_name:
        out_name_path = Path(output_name)
        if out_name_path.parent not in (Path("."), Path("")):
            raise ValueError(
                "Output name must not contain directory components; "
                "it is saved next to the EPUB."
            )
        output_path = inp_path.with_name(out_name_path.name)
    else:
        output_path = inp_path.with_name(suggest_output_name(inp_path.name))
    return [(inp_path, output_path)]


def _run_convert(args: argparse.Namespace) -> int:
    inp_path = Path(args.input_path).expanduser()
    if not inp_path.exists():
        raise FileNotFoundError(f"Input path not found: {inp_path}")
    set_debug_logging(bool(args.debug))
    jobs = _collect_inputs(inp_path, args.output_name)
    options = _resolve_options(args, inp_path if inp_path.is_dir() else inp_path.parent)

    console = Console(stderr=True)
    with _RichProgress(console, enabled=console.is_terminal and not args.debug) as progress:
        for source, output in jobs:
            try:
                convert_file(source, output, options, progress=progress.handler(source.name))
            except (ContainerFormatError, ParseError, EncodingError) as exc:
                raise SystemExit(f"{source.name}: {exc}") from exc
            console.print(f"Wrote {output}")
    return 0


def _run_web(args: argparse.Namespace) -> None:
    set_debug_logging(bool(args.debug))
    if args.max_upload_mb < 1:
        raise SystemExit("--max-upload-mb must be at least 1.")
    options = _resolve_options(args, Path.cwd())
    config = WebConfig(options=options, max_upload_bytes=args.max_upload_mb * 1024 * 1024)
    app = create_app(config)
    print(f"Serving bionic web on http://{args.host}:{args.port}/")
    print("Press Ctrl+C to stop.\n")
    uvicorn.run(app, host=args.host, port=args.port, log_level="info")


def main(argv: list[str] | None = None) -> int:
    if argv is None:
        argv = sys.argv[1:]

    if argv and argv[0] == "web":
        web_parser = build_web_parser()
        web_args = web_parser.parse_args(argv[1:])
        _run_web(web_args)
        return 0

    parser = build_parser()
    if not argv:
        parser.print_help()
        return 0

    args = parser.parse_args(argv)
    return _run_convert(args)


if __name__ == "__main__":
    raise SystemExit(main())
