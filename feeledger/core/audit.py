"""
Fee audit sink. Fire-and-forget: a failure to persist an event is logged and never
fails the payment operation that emitted it. Caller commits.
"""

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from feeledger.core.models import FeeAuditLog

logger = logging.getLogger(__name__)

PAYMENT_RECORDED = "PAYMENT_RECORDED"
INVOICE_CREATED = "INVOICE_CREATED"
INVOICE_PAYMENT = "INVOICE_PAYMENT"
INVOICE_REVERSED = "INVOICE_REVERSED"
FEE_TERMS_LINKED = "FEE_TERMS_LINKED"
FEE_CORRECTED = "FEE_CORRECTED"


def _jsonable(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if isinstance(value, (Decimal, UUID)):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


async def emit_fee_event(
    db: AsyncSession,
    college_id: UUID,
    reference_table: str,
    reference_id: UUID,
    action_type: str,
    old_value: Optional[dict] = None,
    new_value: Optional[dict] = None,
    changed_by: Optional[UUID] = None,
) -> None:
    # flush caller state outside the savepoint so its errors propagate
    await db.flush()
    try:
        async with db.begin_nested():
            db.add(
                FeeAuditLog(
                    college_id=college_id,
                    reference_table=reference_table,
                    reference_id=reference_id,
                    action_type=action_type,
                    old_value=_jsonable(old_value) if old_value is not None else None,
                    new_value=_jsonable(new_value) if new_value is not None else None,
                    changed_by=changed_by,
                )
            )
    except SQLAlchemyError:
        logger.warning(
            "Fee audit event %s for %s %s was not recorded",
            action_type,
            reference_table,
            reference_id,
            exc_info=True,
        )
