"""User-driven status transitions for filings and tax payments."""

from __future__ import annotations

import logging
from contextlib import nullcontext
from dataclasses import dataclass, field
from datetime import date
from typing import Any
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from payroll_tax_engine.database import dialect_name
from payroll_tax_engine.dates import DateLike, to_utc_date
from payroll_tax_engine.exceptions import NotFoundError
from payroll_tax_engine.models import (
    CAPitSdiPayment,
    CASuiEttPayment,
    Federal940Payment,
    Federal941Payment,
    TaxPaymentMixin,
)
from payroll_tax_engine.services.filing_service import FilingService, filing_model
from payroll_tax_engine.services.state_machine import (
    FilingStateMachine,
    FilingStatus,
    InvalidTransitionError,
    PaymentStateMachine,
    PaymentStatus,
)
from payroll_tax_engine.services.tax_payment_service import TaxPaymentService, payment_model

logger = logging.getLogger(__name__)

# Payments settled by filing each return; DE 9C is a wage detail and settles nothing.
CASCADE_PAYMENTS: dict[str, tuple[type[TaxPaymentMixin], ...]] = {
    "form941": (Federal941Payment,),
    "form940": (Federal940Payment,),
    "de9": (CAPitSdiPayment, CASuiEttPayment),
    "de9c": (),
}


@dataclass
class FiledResult:
    filing: Any
    # payment table name -> number of pending payments marked paid
    cascaded: dict[str, int] = field(default_factory=dict)


class FilingUpdateService:
    """Marks filings filed and payments paid.

    Filing a return also settles the pending payments of the same company and
    period. Paying a payment re-runs the recompute for the period it belongs
    to; a failure there is logged and never undoes the payment.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def mark_filing_as_filed(
        self,
        filing_type: str,
        filing_id: UUID,
        filed_date: DateLike,
        filed_by: str | None = None,
    ) -> FiledResult:
        model = filing_model(filing_type)
        filing = await self.session.get(model, filing_id)
        if filing is None:
            raise NotFoundError(model.__name__, filing_id)
        filed_on = to_utc_date(filed_date)

        FilingStateMachine.validate_transition(filing.status, FilingStatus.FILED.value)

        result = await self.session.execute(
            update(model)
            .where(model.filing_id == filing_id, model.status == FilingStatus.COMPUTED.value)
            .values(status=FilingStatus.FILED.value, filed_at=filed_on, filed_by=filed_by)
            .execution_options(synchronize_session=False)
        )
        if not result.rowcount:
            # Filed by a concurrent request between the read and the write
            raise InvalidTransitionError(filing.status, FilingStatus.FILED.value, "status is final")

        cascaded: dict[str, int] = {}
        for payment in CASCADE_PAYMENTS[filing_type]:
            cascaded[payment.__tablename__] = await self._settle_payments(
                payment,
                company_id=filing.company_id,
                year=filing.year,
                quarter=getattr(filing, "quarter", None),
                paid_on=filed_on,
            )

        await self.session.refresh(filing)
        logger.info(
            "Marked %s %s filed on %s; settled payments: %s",
            filing_type,
            filing_id,
            filed_on,
            cascaded or "none",
        )
        return FiledResult(filing=filing, cascaded=cascaded)

    async def mark_tax_payment_as_paid(
        self,
        payment_type: str,
        payment_id: UUID,
        paid_date: DateLike,
        method: str | None = None,
        confirmation: str | None = None,
    ) -> TaxPaymentMixin:
        model = payment_model(payment_type)
        payment = await self.session.get(model, payment_id)
        if payment is None:
            raise NotFoundError(model.__name__, payment_id)
        paid_on = to_utc_date(paid_date)

        PaymentStateMachine.validate_transition(payment.status, PaymentStatus.PAID.value)

        result = await self.session.execute(
            update(model)
            .where(model.payment_id == payment_id, model.status == PaymentStatus.PENDING.value)
            .values(
                status=PaymentStatus.PAID.value,
                paid_date=paid_on,
                payment_method=method,
                confirmation_number=confirmation,
            )
            .execution_options(synchronize_session=False)
        )
        if not result.rowcount:
            raise InvalidTransitionError(payment.status, PaymentStatus.PAID.value, "status is final")
        await self.session.refresh(payment)

        try:
            await self._recompute_after_payment(payment_type, payment)
        except Exception:
            logger.warning(
                "Recompute after paying %s %s failed; payment stays paid",
                payment_type,
                payment_id,
                exc_info=True,
            )
        return payment

    async def _settle_payments(
        self,
        model: type[TaxPaymentMixin],
        company_id: UUID,
        year: int,
        quarter: int | None,
        paid_on: date,
    ) -> int:
        criteria = [
            model.company_id == company_id,
            model.year == year,
            model.status == PaymentStatus.PENDING.value,
        ]
        if quarter is not None:
            criteria.append(model.quarter == quarter)
        result = await self.session.execute(
            update(model)
            .where(*criteria)
            .values(status=PaymentStatus.PAID.value, paid_date=paid_on)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def _recompute_after_payment(self, payment_type: str, payment: TaxPaymentMixin) -> None:
        """Re-run only the filing the payment feeds."""
        filings = FilingService(self.session)
        savepoint = (
            self.session.begin_nested()
            if dialect_name(self.session) == "postgresql"
            else nullcontext()
        )
        async with savepoint:
            if payment_type == "federal941":
                await filings.recompute_form941(payment.company_id, payment.year, payment.quarter)
            elif payment_type == "federal940":
                await TaxPaymentService(self.session).refresh_940_flags(
                    payment.company_id, payment.year
                )
                await filings.recompute_form940(payment.company_id, payment.year)
            else:
                await filings.recompute_de9(payment.company_id, payment.year, payment.quarter)

