from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship
from eprojects.database import Base
from eprojects.utils.dates import utcnow


class Course(Base):
    __tablename__ = "courses"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=False)
    category = Column(String, nullable=False)
    instructor = Column(String, nullable=False)
    duration = Column(String, nullable=False)
    level = Column(String, nullable=False)  # beginner | intermediate | advanced
    image_url = Column(String, nullable=True)
    is_hidden = Column(Boolean, default=False, nullable=False)
    requires_promo_code = Column(Boolean, default=False, nullable=False)
    price = Column(Numeric(10, 2), nullable=True)  # None = gratuito ou apenas via código
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    lessons = relationship(
        "Lesson", back_populates="course", cascade="all, delete-orphan", order_by="Lesson.order"
    )
    materials = relationship("Material", back_populates="course", cascade="all, delete-orphan")
    purchases = relationship("CoursePurchase", back_populates="course", cascade="all, delete-orphan")

    @property
    def is_free(self) -> bool:
        return not self.price or float(self.price) == 0


class Lesson(Base):
    __tablename__ = "lessons"

    id = Column(Integer, primary_key=True, index=True)
    course_id = Column(Integer, ForeignKey("courses.id"), nullable=False, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=False)
    youtube_url = Column(String, nullable=False)
    video_source = Column(String, default="youtube", nullable=False)  # youtube | drive
    order = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    course = relationship("Course", back_populates="lessons")
    # Sem delete-orphan: material pode existir só no curso, sem aula
    materials = relationship("Material", back_populates="lesson", cascade="all")


class Material(Base):
    __tablename__ = "materials"

    id = Column(Integer, primary_key=True, index=True)
    course_id = Column(Integer, ForeignKey("courses.id"), nullable=False, index=True)
    lesson_id = Column(Integer, ForeignKey("lessons.id"), nullable=True)  # None = material direto do curso
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    file_url = Column(String, nullable=False)
    file_type = Column(String, nullable=False)
    icon_type = Column(String, default="file")
    downloadable = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    course = relationship("Course", back_populates="materials")
    lesson = relationship("Lesson", back_populates="materials")


class CoursePurchase(Base):
    __tablename__ = "course_purchases"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    course_id = Column(Integer, ForeignKey("courses.id"), nullable=False, index=True)
    payment_reference = Column(String, nullable=True)  # None para desbloqueio via código promocional
    purchased_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    active = Column(Boolean, default=True, nullable=False)
    price = Column(Numeric(10, 2), nullable=False, default=0)

    user = relationship("User", back_populates="purchases")
    course = relationship("Course", back_populates="purchases")
