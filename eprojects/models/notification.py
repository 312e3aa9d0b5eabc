from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from eprojects.database import Base
from eprojects.utils.dates import utcnow


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False)
    message = Column(Text, nullable=False)
    type = Column(String, default="info", nullable=False)  # info | warning | success | error | chat
    link = Column(String, nullable=True)
    # all | E-BASIC | E-TOOL | E-MASTER | admin | individual (quando user_id está preenchido)
    target_role = Column(String, default="all", nullable=False)
    is_read = Column(Boolean, default=False, nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=True)
