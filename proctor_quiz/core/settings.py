"""Runtime settings gathered from the constants modules."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from proctor_quiz.constants import proctoring_constants, quiz_constants, storage_constants


@dataclass(slots=True)
class ProctorSettings:
    """Tunable knobs for timers, proctoring and local storage."""

    data_dir: Path = Path(storage_constants.DEFAULT_DATA_DIR)
    flag_limit: int = proctoring_constants.FLAG_LIMIT
    tick_seconds: float = quiz_constants.TIMER_TICK_SECONDS
    min_per_question_seconds: int = quiz_constants.MIN_PER_QUESTION_SECONDS
    motion_interval_ms: int = proctoring_constants.MOTION_SAMPLE_INTERVAL_MS
    motion_pixel_threshold: int = proctoring_constants.MOTION_PIXEL_THRESHOLD
    motion_changed_ratio: float = proctoring_constants.MOTION_CHANGED_RATIO
    motion_sample_width: int = proctoring_constants.MOTION_SAMPLE_WIDTH
    motion_sample_height: int = proctoring_constants.MOTION_SAMPLE_HEIGHT

    def __post_init__(self) -> None:
        self.data_dir = Path(self.data_dir)
        if self.flag_limit < 1:
            raise ValueError("Flag limit must be at least 1.")
        if self.tick_seconds <= 0:
            raise ValueError("Tick interval must be positive.")
        if self.motion_interval_ms <= 0:
            raise ValueError("Motion sampling interval must be positive.")
        if not 0 <= self.motion_pixel_threshold <= 255:
            raise ValueError("Motion pixel threshold must be between 0 and 255.")
        if not 0 < self.motion_changed_ratio < 1:
            raise ValueError("Motion changed ratio must be between 0 and 1.")
        if self.motion_sample_width <= 0 or self.motion_sample_height <= 0:
            raise ValueError("Motion sampling resolution must be positive.")

    @property
    def active_snapshot_dir(self) -> Path:
        return self.data_dir / storage_constants.ACTIVE_SNAPSHOT_DIR

    @property
    def archive_snapshot_dir(self) -> Path:
        return self.data_dir / storage_constants.ARCHIVE_SNAPSHOT_DIR

    @property
    def offline_buffer_path(self) -> Path:
        return self.data_dir / storage_constants.OFFLINE_BUFFER_FILE

    @property
    def remote_store_dir(self) -> Path:
        return self.data_dir / storage_constants.REMOTE_STORE_DIR
