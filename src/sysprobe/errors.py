"""Exception hierarchy for sysprobe."""


class SysprobeError(Exception):
    """Base class for all sysprobe errors."""


class ConfigError(SysprobeError, ValueError):
    """Raised when a run configuration is invalid."""


class DurationValidationError(ConfigError):
    """Raised when the operator-supplied duration is not a positive integer."""

    def __init__(self, raw: str, reason: str) -> None:
        self.raw = raw
        self.reason = reason
        super().__init__(f"Invalid duration {raw!r}: {reason}")


class RecordStoreError(SysprobeError, ValueError):
    """Raised when a record store cannot be read as a sample file."""


class EmptyRecordStoreError(RecordStoreError):
    """Raised when a record store holds no usable data rows."""

    def __init__(self, path) -> None:
        self.path = path
        super().__init__(f"No data rows in record store: {path}")
