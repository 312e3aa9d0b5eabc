from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String
from eprojects.database import Base
from eprojects.utils.dates import utcnow


class PlanPrice(Base):
    __tablename__ = "plan_prices"

    id = Column(Integer, primary_key=True, index=True)
    plan_type = Column(String, unique=True, nullable=False)  # E-TOOL | E-MASTER
    monthly_price = Column(Numeric(10, 2), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
    updated_by = Column(Integer, ForeignKey("users.id"), nullable=True)
