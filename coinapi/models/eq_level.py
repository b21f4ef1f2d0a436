from typing import Optional

from sqlalchemy import BigInteger, CheckConstraint, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from coinapi.models.base import BaseModel


class EqLevel(BaseModel):
    """
    totalEq 구간별 레벨

    구간 [min_eq, max_eq] 는 양 끝을 포함하며 다른 레벨과 겹치지 않습니다 (서비스에서 검증).
    """

    __tablename__ = "eq_levels"
    __table_args__ = (
        CheckConstraint("min_eq >= 0", name="ck_eq_levels_min_eq"),
        CheckConstraint("min_eq <= max_eq", name="ck_eq_levels_range"),
        Index("ix_eq_levels_min_eq", "min_eq"),
    )

    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer(), "sqlite"), primary_key=True, autoincrement=True
    )
    min_eq: Mapped[int] = mapped_column(BigInteger, nullable=False)
    max_eq: Mapped[int] = mapped_column(BigInteger, nullable=False)
    level_value: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
