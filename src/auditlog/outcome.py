"""Result of one pass through the audit interceptor."""

from dataclasses import dataclass
from enum import Enum

from auditlog.models import AuditAction


class AuditStatus(str, Enum):
    """What happened to an intercepted mutation."""

    RECORDED = "recorded"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class AuditOutcome:
    """Outcome of intercepting a single mutation.

    Attributes:
        status: Recorded, skipped (ineligible) or failed
        action: Which hook fired
        table_name: Table of the mutated entity, when it was resolved
        reason: Why the mutation was skipped or why auditing failed
        error: The exception behind a failure
        record_id: Identifier of the inserted audit record
    """

    status: AuditStatus
    action: AuditAction
    table_name: str | None = None
    reason: str | None = None
    error: BaseException | None = None
    record_id: int | None = None

    @property
    def recorded(self) -> bool:
        return self.status is AuditStatus.RECORDED
