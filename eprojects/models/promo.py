from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship
from eprojects.database import Base
from eprojects.utils.dates import utcnow


class PromoCode(Base):
    __tablename__ = "promo_codes"
    __table_args__ = (CheckConstraint("used_count <= max_uses", name="ck_promo_used_le_max"),)

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String, unique=True, index=True, nullable=False)
    days = Column(Integer, nullable=False)
    max_uses = Column(Integer, nullable=False)
    used_count = Column(Integer, default=0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    target_role = Column(String, default="E-TOOL", nullable=False)  # E-TOOL | E-MASTER
    promo_type = Column(String, default="role", nullable=False)  # role | course
    course_id = Column(Integer, ForeignKey("courses.id"), nullable=True)
    expiry_date = Column(DateTime(timezone=True), nullable=True)
    valid_until = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    usages = relationship("PromoUsage", back_populates="promo", cascade="all, delete-orphan")
    course = relationship("Course")


class PromoUsage(Base):
    __tablename__ = "promo_usage"
    __table_args__ = (UniqueConstraint("promo_id", "user_id", name="uq_promo_usage_user"),)

    id = Column(Integer, primary_key=True, index=True)
    promo_id = Column(Integer, ForeignKey("promo_codes.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    used_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    promo = relationship("PromoCode", back_populates="usages")
    user = relationship("User", back_populates="promo_usages")
