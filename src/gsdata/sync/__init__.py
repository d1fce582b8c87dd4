"""Bucket synchronization package."""

from .models import (
    LocalEntry,
    SyncAction,
    OutcomeStatus,
    SyncPlan,
    SyncOutcome,
    SyncReport,
    SyncEngineError,
    SyncAbortedError,
    PartialRunFailure,
)
from .exclusions import ExclusionSet, is_excluded, load_exclusions
from .scanner import ScanError, scan_directory
from .planner import build_plan, needs_upload
from .transfer import Payload, TransferStrategy, PlainTransfer, EncryptedTransfer, select_transfer
from .executor import PlanExecutor
from .manifest import write_manifest, render_manifest, select_manifest_entries
from .engine import SyncEngine

__all__ = [
    "LocalEntry",
    "SyncAction",
    "OutcomeStatus",
    "SyncPlan",
    "SyncOutcome",
    "SyncReport",
    "SyncEngineError",
    "SyncAbortedError",
    "PartialRunFailure",
    "ExclusionSet",
    "is_excluded",
    "load_exclusions",
    "ScanError",
    "scan_directory",
    "build_plan",
    "needs_upload",
    "Payload",
    "TransferStrategy",
    "PlainTransfer",
    "EncryptedTransfer",
    "select_transfer",
    "PlanExecutor",
    "write_manifest",
    "render_manifest",
    "select_manifest_entries",
    "SyncEngine",
]
