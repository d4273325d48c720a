"""Quiz-related constants shared across the core and the API layer."""

DIFFICULTY_LEVELS: tuple[str, ...] = ("easy", "medium", "hard")
DEFAULT_NUMBER_OF_QUESTIONS: int = 10
MIN_QUESTIONS: int = 1
MAX_QUESTIONS: int = 50
OPTIONS_PER_QUESTION: int = 4
MIN_PER_QUESTION_SECONDS: int = 10
TIMER_TICK_SECONDS: float = 1.0
