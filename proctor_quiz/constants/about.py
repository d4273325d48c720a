"""Static metadata describing ProctorQuiz."""

APP_NAME = "ProctorQuiz"
APP_VERSION = "0.1"
APP_LICENSE = "MIT License"
APP_ABOUT_TEXT = (
    "ProctorQuiz runs timed multiple-choice quizzes under light proctoring. "
    "Answers are kept locally while offline and synced once the connection returns."
)
