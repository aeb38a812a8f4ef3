"""Run the expense API with uvicorn: ``python -m expense_tracker``."""
from __future__ import annotations

import argparse

import uvicorn

from .config import Settings
from .logging import setup_logger
from .server import create_app


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(prog="expense_tracker", description="Expense tracking REST API")
    parser.add_argument("--host", default=None, help="Interface to bind (default: HOST or 127.0.0.1)")
    parser.add_argument("--port", type=int, default=None, help="Port to listen on (default: PORT or 3000)")
    parser.add_argument("--json-logs", action="store_true", help="Also write JSON logs under ./logs")
    parser.add_argument("--log-level", default=None, help="Log level (default: EXPENSE_LOG_LEVEL or INFO)")
    args = parser.parse_args(argv)

    logger = setup_logger(json_format=args.json_logs, level=args.log_level)
    settings = Settings.from_env()
    host = args.host or settings.host
    port = args.port or settings.port
    logger.info("Starting server on %s:%s", host, port)
    uvicorn.run(create_app(settings), host=host, port=port, log_level=logger.getEffectiveLevel())


if __name__ == "__main__":
    main()
