from fastapi import APIRouter, HTTPException

from attendance_sync.api.dependencies import ContainerDep
from attendance_sync.core.exceptions import CooldownViolationError, ValidationError
from attendance_sync.core.logging import get_logger
from attendance_sync.models.attendance import (
    OfflineAttendancePublic,
    PunchRequest,
    PunchResponse,
    TodayAttendance,
    UnsyncedSummary,
)

logger = get_logger(__name__)

router = APIRouter(
    prefix="/attendance",
    tags=["attendance"],
)


@router.post("/punch", response_model=PunchResponse, status_code=201)
async def punch(request: PunchRequest, container: ContainerDep) -> PunchResponse:
    """
    Record a check-in or check-out.

    The punch is stored locally first and uploaded by the next sync pass
    (immediately when the device is online).

    Raises:
        HTTPException: 422 if the punch is invalid, 429 if it falls inside the
            cooldown window of the previous punch
    """
    try:
        result = await container.attendance.record_punch(
            employee_id=request.employee_id,
            attendance_type=request.attendance_type.value,
            scan_type=request.scan_type,
            latitude=request.latitude,
            longitude=request.longitude,
        )
    except CooldownViolationError as e:
        raise HTTPException(
            status_code=429,
            detail=str(e),
            headers={"Retry-After": str(max(e.remaining_seconds, 1))},
        )
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))

    online = container.connectivity.is_online
    message = (
        "Attendance recorded and queued for upload"
        if online
        else "Network unavailable. Attendance saved offline and will sync when connection is restored."
    )
    return PunchResponse(
        record=OfflineAttendancePublic.model_validate(result.record, from_attributes=True),
        today=result.today,
        message=message,
    )


@router.get("/today", response_model=TodayAttendance)
async def today(container: ContainerDep) -> TodayAttendance:
    """Today's attendance status from the local cache."""
    return await container.attendance.get_today()


@router.get("/unsynced", response_model=UnsyncedSummary)
async def unsynced(container: ContainerDep) -> UnsyncedSummary:
    """Punches captured on this device that the server has not confirmed yet."""
    records = await container.attendance.unsynced()
    return UnsyncedSummary(
        count=len(records),
        records=[
            OfflineAttendancePublic.model_validate(r, from_attributes=True) for r in records
        ],
    )


@router.get("/records/{record_id}", response_model=OfflineAttendancePublic)
async def get_record(record_id: str, container: ContainerDep) -> OfflineAttendancePublic:
    """
    Retrieve a locally captured punch by id.

    Raises:
        HTTPException: 404 if no such record exists on this device
    """
    record = await container.attendance.get_record(record_id)
    if not record:
        raise HTTPException(status_code=404, detail=f"Attendance record {record_id} not found")
    return OfflineAttendancePublic.model_validate(record, from_attributes=True)
