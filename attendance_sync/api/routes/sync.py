from typing import Union

from fastapi import APIRouter, Query, Response

from attendance_sync.api.dependencies import ContainerDep
from attendance_sync.container import Container
from attendance_sync.core.logging import get_logger
from attendance_sync.models.sync import ConnectivityUpdate, SyncReport, SyncStatusResponse

logger = get_logger(__name__)

router = APIRouter(
    prefix="/sync",
    tags=["sync"],
)


async def _status(container: Container) -> SyncStatusResponse:
    unsynced = await container.attendance.unsynced_count()
    return container.orchestrator.status(unsynced, container.connectivity.is_online)


@router.post("", response_model=Union[SyncReport, SyncStatusResponse])
async def trigger_sync(
    container: ContainerDep,
    response: Response,
    wait: bool = Query(default=False, description="Block until the pass finishes"),
):
    """
    Start a sync pass.

    By default the pass runs in the background and the current status is
    returned with 202. With `wait=true` the pass runs inline and its report
    is returned; a pass already in flight yields a report flagged `skipped`.
    """
    if wait:
        return await container.orchestrator.sync()

    container.scheduler.trigger("manual request")
    response.status_code = 202
    return await _status(container)


@router.get("/status", response_model=SyncStatusResponse)
async def sync_status(container: ContainerDep) -> SyncStatusResponse:
    return await _status(container)


@router.put("/connectivity", response_model=SyncStatusResponse)
async def update_connectivity(
    update: ConnectivityUpdate, container: ContainerDep
) -> SyncStatusResponse:
    """
    Report a connectivity change from the platform.

    Going back online triggers a background sync of pending punches.
    """
    changed = await container.connectivity.set_online(update.online)
    if changed:
        logger.info(f"Connectivity changed: online={update.online}")
    return await _status(container)
