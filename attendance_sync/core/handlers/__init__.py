"""
Event handlers for the Offline Attendance Sync Service.

This module contains handlers that react to punch, sync and connectivity
events and drive the sync scheduler accordingly.
"""

from .sync_handlers import register_sync_handlers

__all__ = ["register_sync_handlers"]
