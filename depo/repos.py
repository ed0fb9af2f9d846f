from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from depo.formatting import money
from depo.models import Calculation


class CalculationRepo:
    def __init__(self, session: Session):
        self.session = session

    def add(
        self,
        *,
        user_id: str,
        product_name: str,
        supplier_name: str,
        original_price: float | Decimal,
        margin_percent: float | Decimal,
        final_price: float | Decimal,
        currency: str,
    ) -> Calculation:
        row = Calculation(
            user_id=(user_id or "").strip(),
            product_name=(product_name or "").strip(),
            supplier_name=(supplier_name or "").strip(),
            original_price=money(original_price),
            margin_percent=money(margin_percent),
            final_price=money(final_price),
            currency=(currency or "TRY").strip().upper(),
            created_at=datetime.utcnow(),
        )
        self.session.add(row)
        self.session.flush()
        return row

    def list_for_user(self, user_id: str, limit: int = 50) -> list[Calculation]:
        lim = max(1, min(int(limit or 50), 500))
        stmt = (
            select(Calculation)
            .where(Calculation.user_id == (user_id or "").strip())
            .order_by(Calculation.created_at.desc(), Calculation.id.desc())
            .limit(lim)
        )
        return list(self.session.execute(stmt).scalars().all())

    def delete(self, calculation_id: int) -> bool:
        res = self.session.execute(delete(Calculation).where(Calculation.id == int(calculation_id)))
        return bool(res.rowcount)
