"""Helper HTTP server that mirrors the API key and model into a config file.

The file is a small JavaScript module; only the ``OPENAI_API_KEY: '...'`` and
``DEFAULT_MODEL: '...'`` fields are read or rewritten, the rest of the file is
left as it is.
"""

from __future__ import annotations

from collections.abc import Sequence
import logging
from pathlib import Path
import re

import aiofiles
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel

LOGGER = logging.getLogger(__name__)

API_KEY_RE = re.compile(r"OPENAI_API_KEY:\s*'([^']*)'")
MODEL_RE = re.compile(r"DEFAULT_MODEL:\s*'([^']*)'")

CONFIG_TEMPLATE = """const CONFIG = {
    OPENAI_API_KEY: '',
    DEFAULT_MODEL: 'gpt-3.5-turbo',
};
"""

UPDATED_TEXT = "Configuration updated successfully"
REQUIRED_TEXT = "API key and model are required"
INVALID_VALUE_TEXT = "API key and model must not contain quotes or line breaks"
READ_FAILED_TEXT = "Failed to read configuration file"
WRITE_FAILED_TEXT = "Failed to update configuration file"


class ConfigUpdate(BaseModel):
    apiKey: str | None = None
    model: str | None = None


def read_config_fields(content: str) -> dict[str, str]:
    """Extract ``{apiKey, model}``; a missing field reads as an empty string."""
    api_key = API_KEY_RE.search(content)
    model = MODEL_RE.search(content)
    return {
        "apiKey": api_key.group(1) if api_key else "",
        "model": model.group(1) if model else "",
    }


def rewrite_config_fields(content: str, api_key: str, model: str) -> str:
    content = API_KEY_RE.sub(lambda _: f"OPENAI_API_KEY: '{api_key}'", content, count=1)
    return MODEL_RE.sub(lambda _: f"DEFAULT_MODEL: '{model}'", content, count=1)


def _is_safe_value(value: str) -> bool:
    return not any(char in value for char in "'\r\n")


def create_app(
    config_file: Path | str,
    static_dir: Path | str | None = None,
    cors_origins: Sequence[str] = ("*",),
) -> FastAPI:
    """Build the mirror app for one config file."""
    config_path = Path(config_file).expanduser()
    app = FastAPI(title="LLM Webchat config mirror")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(cors_origins),
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/api/get-config")
    async def get_config() -> JSONResponse:
        try:
            async with aiofiles.open(config_path, encoding="utf-8") as handle:
                content = await handle.read()
        except FileNotFoundError:
            return JSONResponse({"apiKey": "", "model": ""})
        except OSError as exc:
            LOGGER.error(
                "server.config.read_failed",
                extra={
                    "event": "server.config.read_failed",
                    "path": str(config_path),
                    "reason": str(exc),
                },
            )
            return JSONResponse({"error": READ_FAILED_TEXT}, status_code=500)
        return JSONResponse(read_config_fields(content))

    @app.post("/api/update-config")
    async def update_config(update: ConfigUpdate) -> JSONResponse:
        if not update.apiKey or not update.model:
            return JSONResponse({"error": REQUIRED_TEXT}, status_code=400)
        if not (_is_safe_value(update.apiKey) and _is_safe_value(update.model)):
            return JSONResponse({"error": INVALID_VALUE_TEXT}, status_code=400)

        try:
            try:
                async with aiofiles.open(config_path, encoding="utf-8") as handle:
                    content = await handle.read()
            except FileNotFoundError:
                content = CONFIG_TEMPLATE
            content = rewrite_config_fields(content, update.apiKey, update.model)
            async with aiofiles.open(config_path, "w", encoding="utf-8") as handle:
                await handle.write(content)
        except OSError as exc:
            LOGGER.error(
                "server.config.write_failed",
                extra={
                    "event": "server.config.write_failed",
                    "path": str(config_path),
                    "reason": str(exc),
                },
            )
            return JSONResponse({"error": WRITE_FAILED_TEXT}, status_code=500)

        LOGGER.info(
            "server.config.updated",
            extra={"event": "server.config.updated", "model": update.model},
        )
        return JSONResponse(
            {
                "success": True,
                "message": UPDATED_TEXT,
                "apiKey": update.apiKey,
                "model": update.model,
            }
        )

    if static_dir:
        app.mount(
            "/",
            StaticFiles(directory=Path(static_dir).expanduser(), html=True),
            name="static",
        )
    return app
