"""
Migration: one monthly-fee payment per (student, month, year).

Databases created before the partial unique index existed may already hold duplicate
monthly payments. This migration reports them (they must be resolved by hand, the
ledger rows they fed are not touched) and then creates the index the payment recorder
relies on to reject concurrent duplicates.

Run once:
  python -m feeledger.db.migrations.001_monthly_payment_period_index
"""
import asyncio

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine

from feeledger.db.session import engine


FIND_DUPLICATES = """
SELECT student_id, month, year, COUNT(*) AS n
FROM monthly_payments
WHERE is_monthly_fee
GROUP BY student_id, month, year
HAVING COUNT(*) > 1
"""

CREATE_INDEX_POSTGRES = """
CREATE UNIQUE INDEX IF NOT EXISTS uq_monthly_payment_period
ON monthly_payments (student_id, month, year)
WHERE is_monthly_fee
"""

CREATE_INDEX_SQLITE = """
CREATE UNIQUE INDEX IF NOT EXISTS uq_monthly_payment_period
ON monthly_payments (student_id, month, year)
WHERE is_monthly_fee = 1
"""


async def run_migration(db_engine: AsyncEngine) -> bool:
    """Create the index; returns False (and leaves the schema alone) while duplicates exist."""
    async with db_engine.connect() as conn:
        rows = (await conn.execute(text(FIND_DUPLICATES))).mappings().all()
    if rows:
        for row in rows:
            print(
                f"Duplicate monthly payments: student={row['student_id']} "
                f"period={row['month']}/{row['year']} count={row['n']}"
            )
        print("Migration 001_monthly_payment_period_index aborted: resolve duplicates first.")
        return False

    ddl = CREATE_INDEX_SQLITE if db_engine.dialect.name == "sqlite" else CREATE_INDEX_POSTGRES
    async with db_engine.begin() as conn:
        await conn.execute(text(ddl))

    print("Migration 001_monthly_payment_period_index done.")
    return True


if __name__ == "__main__":
    asyncio.run(run_migration(engine))
