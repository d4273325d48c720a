"""Proctoring thresholds. All of them are tunable through ProctorSettings."""

FLAG_LIMIT: int = 3
MOTION_SAMPLE_INTERVAL_MS: int = 2000
MOTION_PIXEL_THRESHOLD: int = 40
MOTION_CHANGED_RATIO: float = 0.01
MOTION_SAMPLE_WIDTH: int = 160
MOTION_SAMPLE_HEIGHT: int = 120
CAMERA_DEVICE_INDEX: int = 0
