from datetime import datetime
from typing import Literal, Optional

from pydantic import Field

from eprojects.schemas.common import ApiModel, UpdateModel

Category = Literal["mechanical", "electrical", "textile", "informatics", "chemical"]
AccessLevel = Literal["E-BASIC", "E-TOOL", "E-MASTER"]
LinkType = Literal["external", "internal", "custom"]


class ToolCreate(ApiModel):
    name: str = Field(min_length=3)
    description: str = Field(min_length=5)
    category: Category
    access_level: AccessLevel
    link_type: LinkType
    link: str = ""
    custom_html: Optional[str] = None
    show_in_iframe: bool = False
    restricted_cpfs: Optional[str] = None


class ToolUpdate(UpdateModel):
    nullable_fields = frozenset({"custom_html", "restricted_cpfs"})

    name: Optional[str] = Field(default=None, min_length=3)
    description: Optional[str] = Field(default=None, min_length=5)
    category: Optional[Category] = None
    access_level: Optional[AccessLevel] = None
    link_type: Optional[LinkType] = None
    link: Optional[str] = None
    custom_html: Optional[str] = None
    show_in_iframe: Optional[bool] = None
    restricted_cpfs: Optional[str] = None


class ToolOut(ApiModel):
    id: int
    name: str
    description: str
    category: str
    access_level: str
    link_type: str
    link: str = ""
    custom_html: Optional[str] = None
    show_in_iframe: bool = False
    restricted_cpfs: Optional[str] = None
    average_rating: Optional[float] = 0
    total_ratings: int = 0
    created_at: Optional[datetime] = None
    locked: bool = False


class RatingRequest(ApiModel):
    rating: int = Field(ge=1, le=5)
    comment: Optional[str] = None


class RatingOut(ApiModel):
    id: int
    tool_id: int
    user_id: int
    rating: int
    comment: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
