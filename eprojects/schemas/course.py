from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import Field

from eprojects.schemas.common import ApiModel, UpdateModel

Category = Literal["mechanical", "electrical", "textile", "informatics", "chemical"]
Level = Literal["beginner", "intermediate", "advanced"]
VideoSource = Literal["youtube", "drive"]
FileType = Literal["pdf", "doc", "xls", "ppt", "zip", "img", "link", "object"]
IconType = Literal["file", "link", "object"]


class CourseCreate(ApiModel):
    title: str = Field(min_length=3)
    description: str = Field(min_length=10)
    category: Category
    instructor: str = Field(min_length=3)
    duration: str = Field(min_length=1)
    level: Level
    image_url: Optional[str] = None
    is_hidden: bool = False
    requires_promo_code: bool = False
    price: Optional[Decimal] = Field(default=None, ge=0)


class CourseUpdate(UpdateModel):
    nullable_fields = frozenset({"image_url", "price"})

    title: Optional[str] = Field(default=None, min_length=3)
    description: Optional[str] = Field(default=None, min_length=10)
    category: Optional[Category] = None
    instructor: Optional[str] = Field(default=None, min_length=3)
    duration: Optional[str] = Field(default=None, min_length=1)
    level: Optional[Level] = None
    image_url: Optional[str] = None
    is_hidden: Optional[bool] = None
    requires_promo_code: Optional[bool] = None
    price: Optional[Decimal] = Field(default=None, ge=0)


class CourseOut(ApiModel):
    id: int
    title: str
    description: str
    category: str
    instructor: str
    duration: str
    level: str
    image_url: Optional[str] = None
    is_hidden: bool = False
    requires_promo_code: bool = False
    price: Optional[float] = None
    created_at: Optional[datetime] = None


class VisibilityRequest(ApiModel):
    is_hidden: bool


class PriceRequest(ApiModel):
    # None volta o curso para gratuito
    price: Optional[Decimal] = Field(ge=0)


class LessonCreate(ApiModel):
    title: str = Field(min_length=3)
    description: str = Field(min_length=10)
    youtube_url: str = Field(min_length=5)
    video_source: VideoSource = "youtube"
    order: int = Field(ge=0)


class LessonUpdate(UpdateModel):
    title: Optional[str] = Field(default=None, min_length=3)
    description: Optional[str] = Field(default=None, min_length=10)
    youtube_url: Optional[str] = Field(default=None, min_length=5)
    video_source: Optional[VideoSource] = None
    order: Optional[int] = Field(default=None, ge=0)


class LessonOut(ApiModel):
    id: int
    course_id: int
    title: str
    description: str
    youtube_url: str
    video_source: str
    order: int
    created_at: Optional[datetime] = None


class MaterialCreate(ApiModel):
    title: str = Field(min_length=3)
    description: Optional[str] = None
    file_url: str = Field(min_length=5)
    file_type: FileType
    icon_type: IconType = "file"
    downloadable: bool = True
    lesson_id: Optional[int] = None


class MaterialUpdate(UpdateModel):
    # lesson_id nulo move o material para o curso, fora de qualquer aula
    nullable_fields = frozenset({"description", "lesson_id"})

    title: Optional[str] = Field(default=None, min_length=3)
    description: Optional[str] = None
    file_url: Optional[str] = Field(default=None, min_length=5)
    file_type: Optional[FileType] = None
    icon_type: Optional[IconType] = None
    downloadable: Optional[bool] = None
    lesson_id: Optional[int] = None


class MaterialOut(ApiModel):
    id: int
    course_id: int
    lesson_id: Optional[int] = None
    title: str
    description: Optional[str] = None
    file_url: str
    file_type: str
    icon_type: Optional[str] = None
    downloadable: bool = True
    created_at: Optional[datetime] = None
