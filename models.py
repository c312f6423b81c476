# models.py
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional

IGNORE_ANNOTATION = "jhe.io/ignore"
DELETE_AFTER_SECONDS_ANNOTATION = "jhe.io/delete-after-seconds"
DEFAULT_DELETE_AFTER_SECONDS = 3600
MAX_DELETE_AFTER_SECONDS = (2**63 - 1) // 10**9   # longest duration an int64 of nanoseconds holds

# Outcome statuses
SKIPPED = "skipped"
DELETED = "deleted"
ALREADY_GONE = "already-gone"
FAILED = "failed"
WOULD_DELETE = "would-delete"


@dataclass(frozen=True)
class JobRecord:
    name: str
    namespace: str
    completion_time: Optional[datetime] = None   # None while the job is still running
    annotations: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class Decision:
    namespace: str
    name: str
    eligible: bool
    reason: str
    retention_seconds: Optional[int] = None
    deadline: Optional[datetime] = None
    error: Optional[str] = None   # non-fatal, e.g. malformed override

    @property
    def key(self) -> str:
        return f"{self.namespace}/{self.name}"

    def to_dict(self) -> dict:
        return {
            "namespace": self.namespace,
            "name": self.name,
            "eligible": self.eligible,
            "reason": self.reason,
            "retention_seconds": self.retention_seconds,
            "deadline": self.deadline.isoformat() if self.deadline else None,
            "error": self.error,
        }


@dataclass(frozen=True)
class Outcome:
    decision: Decision
    status: str   # skipped | deleted | already-gone | failed | would-delete
    error: Optional[str] = None


@dataclass
class SweepReport:
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    outcomes: List[Outcome] = field(default_factory=list)

    def count(self, status: str) -> int:
        return sum(1 for o in self.outcomes if o.status == status)

    @property
    def errors(self) -> List[str]:
        """Per-record problems that did not stop the sweep."""
        errs = []
        for o in self.outcomes:
            if o.decision.error:
                errs.append(f"{o.decision.key}: {o.decision.error}")
            if o.error:
                errs.append(f"{o.decision.key}: {o.error}")
        return errs

    def summary(self) -> str:
        return (f"jobs={len(self.outcomes)} deleted={self.count(DELETED)} "
                f"already_gone={self.count(ALREADY_GONE)} failed={self.count(FAILED)} "
                f"would_delete={self.count(WOULD_DELETE)} skipped={self.count(SKIPPED)}")
