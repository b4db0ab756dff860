"""
Punch validation rules.

A punch that fails validation is rejected before anything is persisted.
"""

from attendance_sync.core.exceptions import ValidationError
from attendance_sync.models.attendance import AttendanceType, ScanType

DAY_MS = 24 * 60 * 60 * 1000

SCAN_TYPE_ALIASES = {
    "face": ScanType.FACE,
    "finger": ScanType.FINGER,
    "fingerprint": ScanType.FINGER,
}


def normalize_scan_type(scan_type: str) -> ScanType:
    """Map a scan type to the value the remote API accepts ("face" or "finger")."""
    try:
        return SCAN_TYPE_ALIASES[(scan_type or "").strip().lower()]
    except KeyError:
        raise ValidationError(f"Invalid scan type: {scan_type}") from None


def normalize_attendance_type(attendance_type: str) -> AttendanceType:
    try:
        return AttendanceType(attendance_type)
    except ValueError:
        raise ValidationError(f"Invalid attendance type: {attendance_type}") from None


def collect_punch_errors(
    *,
    employee_id: str,
    attendance_type: str,
    scan_type: str,
    latitude: float,
    longitude: float,
    timestamp: int,
    now_ms: int,
    max_age_days: int,
) -> list[str]:
    errors: list[str] = []

    if not employee_id or not employee_id.strip():
        errors.append("Employee ID is missing")

    if latitude == 0.0 and longitude == 0.0:
        errors.append("Location coordinates are invalid")
    if latitude < -90 or latitude > 90:
        errors.append("Latitude is out of valid range")
    if longitude < -180 or longitude > 180:
        errors.append("Longitude is out of valid range")

    if (scan_type or "").strip().lower() not in SCAN_TYPE_ALIASES:
        errors.append(f"Invalid scan type: {scan_type}")

    if attendance_type not in {t.value for t in AttendanceType}:
        errors.append(f"Invalid attendance type: {attendance_type}")

    if timestamp > now_ms:
        errors.append("Attendance timestamp is in the future")
    if now_ms - timestamp > max_age_days * DAY_MS:
        errors.append(f"Attendance record is too old (more than {max_age_days} days)")

    return errors


def validate_punch(**kwargs) -> None:
    """Raise ValidationError listing every rule the punch breaks."""
    errors = collect_punch_errors(**kwargs)
    if errors:
        raise ValidationError("; ".join(errors))
