from __future__ import annotations

from importlib import metadata
from pathlib import Path

import tomllib

APP_TITLE = "Bionic Reading EPUB Converter"
APP_DESCRIPTION = "Convert EPUB to Bionic Reading EPUB."
APP_LONG_DESCRIPTION = (
    "Upload an EPUB file and download a copy where the first letters of every word are set in bold."
)
SUCCESS_MESSAGE = "File successfully converted!"
DISTRIBUTION_NAME = "bionic-epub"


def _read_local_version() -> str | None:
    try:
        pyproject_path = Path(__file__).resolve().parents[2] / "pyproject.toml"
    except IndexError:  # pragma: no cover - installed without a source tree
        return None
    try:
        with pyproject_path.open("rb") as fh:
            data = tomllib.load(fh)
    except (FileNotFoundError, tomllib.TOMLDecodeError):
        return None
    return data.get("project", {}).get("version")


try:
    __version__ = metadata.version(DISTRIBUTION_NAME)
except metadata.PackageNotFoundError:
    __version__ = _read_local_version() or "0.0.0+unknown"


def branding_payload() -> dict[str, str]:
    return {
        "title": APP_TITLE,
        "description": APP_DESCRIPTION,
        "long_description": APP_LONG_DESCRIPTION,
        "success_message": SUCCESS_MESSAGE,
        "version": __version__,
    }


__all__ = [
    "APP_DESCRIPTION",
    "APP_LONG_DESCRIPTION",
    "APP_TITLE",
    "SUCCESS_MESSAGE",
    "__version__",
    "branding_payload",
]
