from __future__ import annotations

import html
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import quote

from fastapi import FastAPI, File, HTTPException, UploadFile
from fastapi.responses import HTMLResponse, JSONResponse, Response

from .branding import (
    APP_DESCRIPTION,
    APP_LONG_DESCRIPTION,
    APP_TITLE,
    SUCCESS_MESSAGE,
    __version__,
    branding_payload,
)
from .config import DEFAULT_OPTIONS, ConversionOptions
from .container import EPUB_MIMETYPE, ContainerFormatError, EncodingError
from .convert import convert_async, suggest_output_name
from .logging_utils import debug_log
from .transform import ParseError

_UPLOAD_CHUNK_SIZE = 1024 * 1024


@dataclass(slots=True)
class WebConfig:
    options: ConversionOptions = field(default_factory=lambda: DEFAULT_OPTIONS)
    max_upload_bytes: int = 200 * 1024 * 1024


INDEX_HTML = """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <title>__TITLE__</title>
  <meta name="description" content="__DESCRIPTION__">
  <meta name="viewport" content="width=device-width, initial-scale=1">
  <style>
    :root {
      color-scheme: light dark;
      font-family: -apple-system, BlinkMacSystemFont, "Helvetica Neue", sans-serif;
      --accent: #3b82f6;
      --muted: #6b7280;
      --danger: #dc2626;
      --radius: 14px;
    }
    body {
      margin: 0;
      display: flex;
      justify-content: center;
    }
    main {
      max-width: 36rem;
      padding: 2rem 1.4rem;
    }
    h1 {
      margin: 0 0 0.4rem;
      font-size: 1.6rem;
    }
    p.lead {
      color: var(--muted);
      margin: 0 0 1.4rem;
    }
    label.drop {
      display: block;
      border: 2px dashed var(--accent);
      border-radius: var(--radius);
      padding: 2rem 1rem;
      text-align: center;
      cursor: pointer;
    }
    .status {
      margin-top: 1rem;
      min-height: 1.4rem;
    }
    .status.error {
      color: var(--danger);
    }
    .hidden {
      display: none !important;
    }
    footer {
      margin-top: 2rem;
      font-size: 0.85rem;
      color: var(--muted);
    }
  </style>
</head>
<body>
  <main>
    <h1>__TITLE__</h1>
    <p class="lead">__LONG_DESCRIPTION__</p>
    <label class="drop">
      <input id="file-input" type="file" accept=".epub,application/epub+zip" class="hidden">
      <span>Choose an EPUB file</span>
    </label>
    <div id="status" class="status"></div>
    <footer>Version: __VERSION__</footer>
  </main>
  <script>
    const input = document.getElementById("file-input");
    const statusEl = document.getElementById("status");

    function setStatus(text, isError) {
      statusEl.textContent = text;
      statusEl.classList.toggle("error", Boolean(isError));
    }

    function filenameFromHeader(header, fallback) {
      if (!header) {
        return fallback;
      }
      const match = /filename\\*=UTF-8''([^;]+)/i.exec(header);
      return match ? decodeURIComponent(match[1]) : fallback;
    }

    input.addEventListener("change", async () => {
      const file = input.files && input.files[0];
      if (!file) {
        return;
      }
      setStatus("Converting " + file.name + "…", false);
      const form = new FormData();
      form.append("file", file);
      try {
        const response = await fetch("/api/convert", { method: "POST", body: form });
        if (!response.ok) {
          const payload = await response.json().catch(() => ({}));
          throw new Error(payload.detail || response.statusText);
        }
        const blob = await response.blob();
        const name = filenameFromHeader(response.headers.get("Content-Disposition"), "converted.epub");
        const url = URL.createObjectURL(blob);
        const link = document.createElement("a");
        link.href = url;
        link.download = name;
        document.body.appendChild(link);
        link.click();
        link.remove();
        URL.revokeObjectURL(url);
        setStatus("__SUCCESS__", false);
      } catch (err) {
        setStatus("Conversion failed: " + err.message, true);
      } finally {
        input.value = "";
      }
    });
  </script>
</body>
</html>
"""


def render_index_html() -> str:
    replacements = {
        "__TITLE__": APP_TITLE,
        "__DESCRIPTION__": APP_DESCRIPTION,
        "__LONG_DESCRIPTION__": APP_LONG_DESCRIPTION,
        "__SUCCESS__": SUCCESS_MESSAGE,
        "__VERSION__": __version__,
    }
    page = INDEX_HTML
    for marker, value in replacements.items():
        page = page.replace(marker, html.escape(value))
    return page


def _content_disposition(filename: str) -> str:
    ascii_name = filename.encode("ascii", "replace").decode("ascii").replace("?", "_").replace('"', "_")
    return f"attachment; filename=\"{ascii_name}\"; filename*=UTF-8''{quote(filename)}"


def create_app(config: WebConfig | None = None) -> FastAPI:
    config = config or WebConfig()
    app = FastAPI(title=APP_TITLE, version=__version__)
    index_page = render_index_html()

    @app.get("/", response_class=HTMLResponse)
    def index() -> HTMLResponse:
        return HTMLResponse(index_page)

    @app.get("/api/info")
    def api_info() -> JSONResponse:
        return JSONResponse(branding_payload())

    @app.post("/api/convert")
    async def api_convert(file: UploadFile = File(...)) -> Response:
        filename = file.filename or "upload.epub"
        if Path(filename).suffix.lower() != ".epub":
            raise HTTPException(status_code=400, detail="Only .epub files are supported.")
        chunks: list[bytes] = []
        received = 0
        try:
            while True:
                chunk = await file.read(_UPLOAD_CHUNK_SIZE)
                if not chunk:
                    break
                received += len(chunk)
                if received > config.max_upload_bytes:
                    raise HTTPException(status_code=413, detail="Upload exceeds the maximum size.")
                chunks.append(chunk)
        finally:
            await file.close()
        if not received:
            raise HTTPException(status_code=400, detail="Uploaded file is empty.")

        debug_log(f"Converting upload {filename} ({received} bytes)")
        try:
            converted = await convert_async(b"".join(chunks), config.options)
        except (ContainerFormatError, ParseError, EncodingError) as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc

        output_name = suggest_output_name(filename)
        return Response(
            content=converted,
            media_type=EPUB_MIMETYPE,
            headers={"Content-Disposition": _content_disposition(output_name)},
        )

    return app


__all__ = ["INDEX_HTML", "WebConfig", "create_app", "render_index_html"]
