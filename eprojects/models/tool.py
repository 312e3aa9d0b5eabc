from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship
from eprojects.database import Base
from eprojects.utils.dates import utcnow


class Tool(Base):
    __tablename__ = "tools"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=False)
    category = Column(String, nullable=False)  # mechanical, electrical, textile, informatics, chemical
    access_level = Column(String, nullable=False)  # E-BASIC | E-TOOL | E-MASTER
    link_type = Column(String, nullable=False)  # external | internal | custom
    link = Column(String, nullable=False, default="")
    custom_html = Column(Text, nullable=True)
    show_in_iframe = Column(Boolean, default=False, nullable=False)
    restricted_cpfs = Column(String, nullable=True)  # CPFs separados por vírgula
    average_rating = Column(Numeric(3, 2), default=0)
    total_ratings = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    ratings = relationship("ToolRating", back_populates="tool", cascade="all, delete-orphan")


class ToolRating(Base):
    __tablename__ = "tool_ratings"
    __table_args__ = (UniqueConstraint("tool_id", "user_id", name="uq_tool_rating_user"),)

    id = Column(Integer, primary_key=True, index=True)
    tool_id = Column(Integer, ForeignKey("tools.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    rating = Column(Integer, nullable=False)  # 1-5 estrelas
    comment = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    tool = relationship("Tool", back_populates="ratings")
    user = relationship("User", back_populates="ratings")
