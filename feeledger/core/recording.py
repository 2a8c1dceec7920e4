"""Step tracking for multi-entity payment writes, used to report partial failures."""

import logging
from typing import Dict, List, Optional
from uuid import UUID

from feeledger.core.exceptions import PartialFailureError

logger = logging.getLogger(__name__)


class RecordingProgress:
    """Ordered list of sub-records staged so far by one payment operation."""

    def __init__(self, operation: str) -> None:
        self.operation = operation
        self.completed_steps: List[str] = []
        self.staged_ids: Dict[str, UUID] = {}

    def mark(self, step: str, record_id: Optional[UUID] = None) -> None:
        self.completed_steps.append(step)
        if record_id is not None:
            self.staged_ids[step] = record_id

    def has(self, step: str) -> bool:
        return step in self.completed_steps

    def failure(self, exc: BaseException) -> PartialFailureError:
        """Log the failure with full context and build the error to raise."""
        logger.error(
            "%s failed after staging %s (ids=%s); database transaction rolled back",
            self.operation,
            ", ".join(self.completed_steps) or "nothing",
            {k: str(v) for k, v in self.staged_ids.items()},
            exc_info=exc,
        )
        return PartialFailureError(
            f"{self.operation} failed after {', '.join(self.completed_steps)}; nothing was committed",
            completed_steps=self.completed_steps,
            staged_ids=self.staged_ids,
        )
