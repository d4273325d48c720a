"""Application entry point for ProctorQuiz."""

from __future__ import annotations

from proctor_quiz.adapters.local_persistence import LocalPersistence
from proctor_quiz.adapters.opencv_camera import OpenCVCamera
from proctor_quiz.adapters.question_bank import BUNDLED_BANK_DIR, QuestionBankGenerator
from proctor_quiz.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT
from proctor_quiz.core.quiz_manager import QuizManager
from proctor_quiz.core.services.connectivity import ConnectivityMonitor, probe_connection
from proctor_quiz.core.settings import ProctorSettings
from proctor_quiz.server.api_server import run_api_server
from proctor_quiz.utils.logging_config import configure_logging


def main() -> None:
    """Initialize logging, wire the quiz manager, and serve the student page."""
    logger = configure_logging()
    logger.info("Starting ProctorQuiz...")

    settings = ProctorSettings()
    quiz_manager = QuizManager(
        generator=QuestionBankGenerator(BUNDLED_BANK_DIR),
        persistence=LocalPersistence(settings.remote_store_dir),
        camera=OpenCVCamera(),
        settings=settings,
        connectivity=ConnectivityMonitor(online=probe_connection()),
    )
    logger.info("Student page available at http://%s:%d/", DEFAULT_HOST, DEFAULT_PORT)
    run_api_server(quiz_manager, host=DEFAULT_HOST, port=DEFAULT_PORT)


if __name__ == "__main__":
    main()
