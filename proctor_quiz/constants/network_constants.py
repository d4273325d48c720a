"""Network configuration constants for the quiz application."""

DEFAULT_HOST: str = "127.0.0.1"
DEFAULT_PORT: int = 8000
CONNECTIVITY_PROBE_HOST: str = "8.8.8.8"
CONNECTIVITY_PROBE_PORT: int = 53
CONNECTIVITY_PROBE_TIMEOUT_SECONDS: float = 2.0
CONNECTIVITY_PROBE_INTERVAL_SECONDS: float = 15.0
