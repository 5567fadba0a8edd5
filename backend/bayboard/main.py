"""
bayboard backend service: job workflow board.
"""

import argparse
import logging
import os
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from bayboard.board.controller import BoardController
from bayboard.persistence.manager import PersistenceManager
from bayboard.routes import board
from bayboard.settings import ENV_DB_PATH, ShopSettings, load_settings
from bayboard.workflow.registry import JobRegistry

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[ShopSettings] = None,
    db_path: Optional[str] = None,
    registry: Optional[JobRegistry] = None,
) -> FastAPI:
    """
    Build the FastAPI app with its registry and board controller.

    Args:
        settings: Shop settings (defaults to $BAYBOARD_SETTINGS or built-ins)
        db_path: SQLite file (defaults to $BAYBOARD_DB_PATH; unset keeps state in memory)
        registry: Pre-built registry, mainly for tests
    """
    settings = settings or load_settings()
    db_path = db_path or os.environ.get(ENV_DB_PATH)

    if registry is None:
        persistence = (
            PersistenceManager(db_path=db_path, busy_timeout=settings.commit_timeout_seconds)
            if db_path else None
        )
        registry = JobRegistry(persistence_manager=persistence)
        if persistence:
            registry.load_all()

    app = FastAPI(title="bayboard", version="0.1.0")

    # CORS middleware for the board UI dev server
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:5173"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.settings = settings
    app.state.job_registry = registry
    app.state.board_controller = BoardController(registry, settings=settings)

    app.include_router(board.router)

    logger.info(
        f"[STARTUP] {settings.shop_name}: {settings.bay_capacity} active bay(s), "
        f"confirmation policy {settings.confirmation_policy.value}, "
        f"storage {'sqlite:' + db_path if db_path else 'memory'}"
    )
    return app


app = create_app()


DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8085


def run_server(
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_PORT,
    settings_path: Optional[str] = None,
    db_path: Optional[str] = None,
) -> None:
    """
    Run the board API server.

    Args:
        host: Host to bind to
        port: Port to listen on
        settings_path: Shop settings JSON (defaults to $BAYBOARD_SETTINGS)
        db_path: SQLite file (defaults to $BAYBOARD_DB_PATH)
    """
    import uvicorn

    server_app = create_app(settings=load_settings(settings_path), db_path=db_path)

    print("Starting bayboard API")
    print(f"Binding to: {host}:{port}")

    uvicorn.run(server_app, host=host, port=port)


def main(argv=None) -> None:
    parser = argparse.ArgumentParser(description="Shop job board API")
    parser.add_argument("--host", default=DEFAULT_HOST)
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    parser.add_argument("--settings", help="Shop settings JSON file")
    parser.add_argument("--db", help="SQLite database file")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    run_server(host=args.host, port=args.port, settings_path=args.settings, db_path=args.db)


if __name__ == "__main__":
    main()
