"""Configuration for the GigFlow core services."""

import os
from dataclasses import dataclass


@dataclass
class GigFlowConfig:
    """Tunables shared by the marketplace, messaging and realtime services.

    Attributes:
        notify_timeout_seconds: Upper bound on a single real-time send.
        max_page_size: Largest page a list operation will return.
        default_page_size: Page size used when the caller does not ask.
        password_hash_rounds: bcrypt cost factor for new password hashes.
    """

    notify_timeout_seconds: float = 2.0
    max_page_size: int = 100
    default_page_size: int = 20
    password_hash_rounds: int = 12

    def __post_init__(self):
        if self.notify_timeout_seconds <= 0:
            raise ValueError("notify_timeout_seconds must be positive")
        if not 4 <= self.password_hash_rounds <= 31:
            raise ValueError("password_hash_rounds must be between 4 and 31")
        if self.max_page_size < 1:
            raise ValueError("max_page_size must be at least 1")
        if not 1 <= self.default_page_size <= self.max_page_size:
            raise ValueError("default_page_size must be between 1 and max_page_size")

    @classmethod
    def from_env(cls) -> "GigFlowConfig":
        """Build a config from ``GIGFLOW_*`` environment variables."""
        return cls(
            notify_timeout_seconds=float(os.environ.get("GIGFLOW_NOTIFY_TIMEOUT_SECONDS", "2.0")),
            max_page_size=int(os.environ.get("GIGFLOW_MAX_PAGE_SIZE", "100")),
            default_page_size=int(os.environ.get("GIGFLOW_DEFAULT_PAGE_SIZE", "20")),
            password_hash_rounds=int(os.environ.get("GIGFLOW_PASSWORD_HASH_ROUNDS", "12")),
        )

    def clamp_limit(self, limit: int | None) -> int:
        """Clamp a requested page size into the allowed range."""
        if limit is None:
            return self.default_page_size
        return max(1, min(limit, self.max_page_size))
