"""Invoice number allocation."""

from __future__ import annotations

import logging
import random
import re

from sqlalchemy import func, insert, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from fieldops_billing.errors import ConflictError
from fieldops_billing.models import Invoice, InvoiceNumberSequence

logger = logging.getLogger(__name__)

INVOICE_NUMBER_PATTERN = re.compile(r"^INV-(\d{4})-(\d{5})$")
MAX_SEQUENCE = 99999


def format_invoice_number(year: int, sequence: int) -> str:
    """Format ``INV-YYYY-NNNNN``."""
    return f"INV-{year:04d}-{sequence:05d}"


def parse_invoice_number(number: str) -> tuple[int, int] | None:
    """Split an invoice number into (year, sequence), None if malformed."""
    match = INVOICE_NUMBER_PATTERN.match(number)
    if match is None:
        return None
    return int(match.group(1)), int(match.group(2))


class InvoiceNumberAllocator:
    """Allocates ``INV-YYYY-NNNNN`` numbers from a per-year sequence row.

    The sequence is advanced with a single ``UPDATE ... RETURNING`` so
    concurrent allocators never read the same value. A year's row is
    created on first use, seeded from the highest number already issued
    that year. When the sequence cannot be used at all, a random suffix
    is drawn and checked against issued numbers instead.

    Allocation does not reserve the number: the caller inserts the
    invoice and retries with a fresh number on a unique violation.
    """

    FALLBACK_ATTEMPTS = 20

    def __init__(self, session: AsyncSession):
        self.session = session

    async def next_number(self, year: int) -> str:
        """Return the next candidate invoice number for a year."""
        try:
            # A failed statement aborts the enclosing transaction on
            # PostgreSQL; the savepoint keeps the fallback queries usable
            async with self.session.begin_nested():
                sequence = await self._advance_sequence(year)
        except SQLAlchemyError:
            logger.warning(
                "Invoice number sequence unavailable for %s, using random fallback",
                year,
                exc_info=True,
            )
            return await self._fallback_number(year)

        if sequence > MAX_SEQUENCE:
            raise ConflictError(f"Invoice number sequence for {year} is exhausted")
        return format_invoice_number(year, sequence)

    async def _advance_sequence(self, year: int) -> int:
        """Increment and return the sequence value for a year."""
        value = await self._increment(year)
        if value is not None:
            return value

        seed = await self._highest_issued(year)
        try:
            async with self.session.begin_nested():
                await self.session.execute(
                    insert(InvoiceNumberSequence).values(year=year, last_value=seed + 1)
                )
            return seed + 1
        except IntegrityError:
            # Another allocator created the row first
            value = await self._increment(year)
            if value is None:
                raise
            return value

    async def _increment(self, year: int) -> int | None:
        result = await self.session.execute(
            update(InvoiceNumberSequence)
            .where(InvoiceNumberSequence.year == year)
            .values(last_value=InvoiceNumberSequence.last_value + 1)
            .returning(InvoiceNumberSequence.last_value)
            .execution_options(synchronize_session=False)
        )
        return result.scalar_one_or_none()

    async def _highest_issued(self, year: int) -> int:
        """Highest sequence already used by an invoice in a year."""
        result = await self.session.execute(
            select(func.max(Invoice.invoice_number)).where(
                Invoice.invoice_number.like(f"INV-{year:04d}-%")
            )
        )
        highest = result.scalar_one_or_none()
        parsed = parse_invoice_number(highest) if highest else None
        return parsed[1] if parsed else 0

    async def _fallback_number(self, year: int) -> str:
        """Random-suffix number that is not already in use."""
        for _ in range(self.FALLBACK_ATTEMPTS):
            candidate = format_invoice_number(year, random.randint(1, MAX_SEQUENCE))
            if not await self.is_taken(candidate):
                return candidate
        raise ConflictError(f"Could not find a free invoice number for {year}")

    async def is_taken(self, invoice_number: str) -> bool:
        """Check whether an invoice already uses this number."""
        result = await self.session.execute(
            select(Invoice.invoice_id).where(Invoice.invoice_number == invoice_number).limit(1)
        )
        return result.first() is not None
