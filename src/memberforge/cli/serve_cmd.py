"""Serve command: run the HTTP API with uvicorn."""

import click
import uvicorn

from memberforge.config import Settings


@click.command()
@click.option("--host", default="127.0.0.1", show_default=True, help="Interface to bind.")
@click.option("--port", type=int, default=None, help="Port (default: MEMBERFORGE_PORT or 8000).")
@click.option("--reload", is_flag=True, default=False, help="Reload on code changes.")
def serve(host: str, port: int | None, reload: bool):
    """Run the membership category API."""
    settings = Settings.from_env()
    uvicorn.run(
        "memberforge.api.app:app",
        host=host,
        port=port or settings.port,
        reload=reload,
        log_level=settings.log_level.lower(),
    )
