"""On-disk layout for local snapshots and the offline answer buffer."""

DEFAULT_DATA_DIR: str = ".proctor_quiz"
ACTIVE_SNAPSHOT_DIR: str = "active"
ARCHIVE_SNAPSHOT_DIR: str = "archive"
OFFLINE_BUFFER_FILE: str = "offline_answers.json"
REMOTE_STORE_DIR: str = "remote"
QUESTION_BANK_DIR: str = "question_banks"
