class AttendanceSyncError(Exception):
    """Base exception for the offline attendance core."""


class ValidationError(AttendanceSyncError):
    """Raised when a punch is rejected locally. Rejected punches are never persisted."""


class CooldownViolationError(ValidationError):
    """Raised when a punch arrives inside the cooldown window of the previous one."""

    def __init__(self, message: str, remaining_seconds: int):
        super().__init__(message)
        self.remaining_seconds = remaining_seconds


class TransportError(AttendanceSyncError):
    """Raised when the remote attendance API cannot be reached or fails server-side."""


class RemoteValidationError(AttendanceSyncError):
    """Raised when the remote attendance API refuses a punch."""

    def __init__(self, message: str, status_code: int):
        super().__init__(message)
        self.status_code = status_code
