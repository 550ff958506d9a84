"""Module executed when running ``python -m cineai``."""

from __future__ import annotations

import logging

import uvicorn

from app.config import settings

logger = logging.getLogger("cineai")


def main() -> None:
    """Start the uvicorn server using the configured settings."""

    logging.basicConfig(level=logging.INFO)
    if not settings.has_tmdb_credentials:
        logger.warning("Starting without TMDB_API_KEY; only bundled movies will be served")
    uvicorn.run(
        "app.main:app",
        host=settings.server_host,
        port=settings.server_port,
        reload=settings.environment == "development",
        log_level="debug" if settings.environment == "development" else "info",
    )


if __name__ == "__main__":  # pragma: no cover - runtime entrypoint
    main()
