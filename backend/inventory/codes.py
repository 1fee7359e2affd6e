"""
Warehouse code allocation.

Codes look like WH001, WH002, ... and are unique across the whole system.
Allocation continues from the highest existing WH<digits> code and is
serialized through a row in warehouse_code_sequences that is locked
(SELECT ... FOR UPDATE) for the rest of the caller's transaction.
"""

import re

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import Warehouse, WarehouseCodeSequence

logger = structlog.get_logger()

CODE_PREFIX = "WH"
CODE_WIDTH = 3
SEQUENCE_NAME = "warehouse"

_CODE_RE = re.compile(rf"^{CODE_PREFIX}(\d+)$")


def parse_code(code: str | None) -> int | None:
    """Numeric suffix of a WH code, or None when the code has another shape."""
    if not code:
        return None
    match = _CODE_RE.match(code)
    return int(match.group(1)) if match else None


def format_code(number: int) -> str:
    return f"{CODE_PREFIX}{number:0{CODE_WIDTH}d}"


async def highest_existing_code(db: AsyncSession) -> int:
    """Numerically highest WH<digits> code across every company (0 when none)."""
    codes = await db.scalars(select(Warehouse.code).where(Warehouse.code.like(f"{CODE_PREFIX}%")))
    numbers = [n for n in (parse_code(code) for code in codes) if n is not None]
    return max(numbers, default=0)


async def allocate_warehouse_codes(db: AsyncSession, count: int) -> list[str]:
    """
    Reserve `count` consecutive codes inside the caller's transaction.

    The first code is max(sequence, highest existing code) + 1. The sequence
    row is advanced before returning, so the caller must commit or roll back
    together with the warehouses it inserts.
    """
    if count <= 0:
        return []

    result = await db.execute(
        select(WarehouseCodeSequence).where(WarehouseCodeSequence.name == SEQUENCE_NAME).with_for_update()
    )
    sequence = result.scalar_one_or_none()
    if sequence is None:
        sequence = WarehouseCodeSequence(name=SEQUENCE_NAME, last_value=0)
        db.add(sequence)

    start = max(sequence.last_value or 0, await highest_existing_code(db)) + 1
    codes = [format_code(start + offset) for offset in range(count)]
    sequence.last_value = start + count - 1
    await db.flush()

    logger.info("warehouse_codes.allocated", first=codes[0], last=codes[-1], count=count)
    return codes
