"""
Remote collaborators backed by the hosted table API.

Components:
- table_client: TableApiClient (httpx) for select/upsert
- progress_sync: RemoteProgressSync best-effort progress mirror
"""

from .progress_sync import ProgressSync, RemoteProgressSync, SyncResult, apply_progress_action
from .table_client import TableApiClient

__all__ = [
    "TableApiClient",
    "ProgressSync",
    "RemoteProgressSync",
    "SyncResult",
    "apply_progress_action",
]
