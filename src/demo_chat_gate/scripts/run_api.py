"""Helper to run the FastAPI server."""

from __future__ import annotations

import logging

import uvicorn

from ..config import settings


def main() -> None:
    logging.basicConfig(level=settings.log_level.upper())
    uvicorn.run("demo_chat_gate.api.server:app", host=settings.host, port=settings.port, reload=False)


if __name__ == "__main__":
    main()
