"""Data model for bucket synchronization."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, Iterator, List, Optional


class SyncAction(str, Enum):
    """What the engine does with one key."""

    UPLOAD = "upload"
    SKIP = "skip"
    DELETE = "delete"


class OutcomeStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"


@dataclass(frozen=True)
class LocalEntry:
    """A regular file under the synchronization root."""

    relative_path: str
    size_bytes: int
    content_digest: str


class SyncPlan(Mapping):
    """Immutable mapping of key to action, iterated in key order."""

    def __init__(self, actions: Mapping):
        self._actions: Dict[str, SyncAction] = {
            key: SyncAction(actions[key]) for key in sorted(actions)
        }

    def __getitem__(self, key: str) -> SyncAction:
        return self._actions[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._actions)

    def __len__(self) -> int:
        return len(self._actions)

    def __repr__(self) -> str:
        return f"SyncPlan({self.counts()})"

    def keys_for(self, action: SyncAction) -> List[str]:
        return [key for key, value in self._actions.items() if value == action]

    def counts(self) -> Dict[str, int]:
        """Number of keys per action."""
        return {action.value: len(self.keys_for(action)) for action in SyncAction}


@dataclass
class SyncOutcome:
    """Result of executing the action planned for one key."""

    key: str
    action: SyncAction
    status: OutcomeStatus
    attempts: int = 0
    reason: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == OutcomeStatus.SUCCESS


@dataclass
class SyncReport:
    """Outcome of a full synchronization run."""

    bucket: str
    plan: SyncPlan
    outcomes: List[SyncOutcome]
    duration: float = 0.0
    manifest_path: Optional[Path] = None
    cancelled: bool = False
    metrics: Dict = field(default_factory=dict)

    @property
    def succeeded(self) -> int:
        """Uploads and deletes that completed."""
        return len([o for o in self.outcomes if o.succeeded and o.action != SyncAction.SKIP])

    @property
    def skipped(self) -> int:
        return len([o for o in self.outcomes if o.action == SyncAction.SKIP and o.succeeded])

    @property
    def failed(self) -> int:
        return len([o for o in self.outcomes if not o.succeeded])

    @property
    def success(self) -> bool:
        return self.failed == 0

    def raise_for_failures(self) -> None:
        """Raise PartialRunFailure if any planned action failed."""
        if not self.success:
            raise PartialRunFailure(self)


class SyncEngineError(Exception):
    """Base exception for sync engine errors."""
    pass


class SyncAbortedError(SyncEngineError):
    """Raised when the run stops before any per-key action is dispatched."""
    pass


class PartialRunFailure(SyncEngineError):
    """Raised when the run completed but one or more keys failed."""

    def __init__(self, report: SyncReport):
        super().__init__(
            f"{report.failed} of {len(report.outcomes)} planned actions failed for bucket {report.bucket}"
        )
        self.report = report
