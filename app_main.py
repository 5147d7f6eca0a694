"""Application entry point for the QuizLive server."""

from __future__ import annotations

import argparse
from pathlib import Path
import socket

from quiz_live.config import Settings, load_settings
from quiz_live.core.quiz_importer import QuizImportError, load_quizzes_from_directory
from quiz_live.server.api_server import create_api_app, run_api_server
from quiz_live.utils.logging_config import configure_logging


def _determine_public_url(port: int) -> str:
    """Best-effort determination of the local IP for the participant-facing URL."""
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
            sock.connect(("8.8.8.8", 80))
            ip_address = sock.getsockname()[0]
    except OSError:
        ip_address = "127.0.0.1"
    return f"http://{ip_address}:{port}/"


def _parse_args(settings: Settings) -> Settings:
    parser = argparse.ArgumentParser(description="Run the QuizLive real-time quiz server.")
    parser.add_argument("--host", default=settings.host)
    parser.add_argument("--port", type=int, default=settings.port)
    parser.add_argument(
        "--quiz-dir",
        type=Path,
        default=settings.quiz_dir,
        help="Directory of .txt quiz files to load at startup.",
    )
    args = parser.parse_args()
    settings.host = args.host
    settings.port = args.port
    settings.quiz_dir = args.quiz_dir
    return settings


def main() -> None:
    """Load settings and quizzes, then serve the API."""
    settings = _parse_args(load_settings())
    logger = configure_logging(settings.log_level)
    logger.info("Starting QuizLive server...")

    quizzes = []
    if settings.quiz_dir is not None:
        try:
            imported = load_quizzes_from_directory(settings.quiz_dir)
        except QuizImportError as exc:
            raise SystemExit(f"Could not load quizzes: {exc}") from exc
        quizzes = [item.quiz for item in imported]
        logger.info("Loaded %d quiz file(s) from %s", len(quizzes), settings.quiz_dir)
    else:
        logger.warning("No quiz directory configured; the server starts without quizzes")

    app = create_api_app(settings=settings, quizzes=quizzes)
    logger.info("Participants connect at %s", _determine_public_url(settings.port))
    run_api_server(app, settings.host, settings.port, log_level=settings.log_level)


if __name__ == "__main__":
    main()
