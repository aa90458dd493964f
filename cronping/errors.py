"""Exception types raised by cronping."""


class CronpingError(Exception):
    """Base class for all cronping errors."""


class ConfigError(CronpingError):
    """Configuration could not be loaded or is invalid."""


class ApiError(CronpingError):
    """The monitor provisioning API returned an unexpected response."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code
