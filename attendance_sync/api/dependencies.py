"""
Shared API dependencies.
Contains reusable dependency functions for FastAPI endpoints.
"""

from typing import Annotated

from fastapi import Depends, Request

from attendance_sync.container import Container


def get_container(request: Request) -> Container:
    return request.app.state.container


# Use this type annotation in route handlers to get the wired core injected
ContainerDep = Annotated[Container, Depends(get_container)]
