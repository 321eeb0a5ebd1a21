"""Network configuration constants for the attempt service."""

DEFAULT_HOST: str = "0.0.0.0"
DEFAULT_PORT: int = 8000
LOG_LEVEL: str = "info"
