from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import func
from sqlalchemy.orm import Session

from eprojects.models.tool import Tool, ToolRating
from eprojects.models.user import User
from eprojects.utils.dates import utcnow


def recompute_tool_rating(db: Session, tool: Tool) -> None:
    total, average = (
        db.query(func.count(ToolRating.id), func.avg(ToolRating.rating))
        .filter(ToolRating.tool_id == tool.id)
        .one()
    )
    tool.total_ratings = total or 0
    tool.average_rating = Decimal(str(average or 0)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def rate_tool(db: Session, tool: Tool, user: User, rating: int, comment: str | None = None) -> ToolRating:
    """Uma avaliação por usuário e ferramenta; avaliar de novo edita a existente."""
    existing = (
        db.query(ToolRating)
        .filter(ToolRating.tool_id == tool.id, ToolRating.user_id == user.id)
        .first()
    )
    if existing:
        existing.rating = rating
        existing.comment = comment
        existing.updated_at = utcnow()
        current = existing
    else:
        current = ToolRating(tool_id=tool.id, user_id=user.id, rating=rating, comment=comment)
        db.add(current)

    db.flush()
    recompute_tool_rating(db, tool)
    db.commit()
    db.refresh(current)
    return current


def tool_ratings(db: Session, tool_id: int) -> list[dict]:
    rows = (
        db.query(ToolRating, User.username)
        .join(User, User.id == ToolRating.user_id)
        .filter(ToolRating.tool_id == tool_id)
        .order_by(ToolRating.updated_at.desc())
        .all()
    )
    return [
        {
            "id": r.id,
            "toolId": r.tool_id,
            "userId": r.user_id,
            "username": username,
            "rating": r.rating,
            "comment": r.comment,
            "createdAt": r.created_at,
            "updatedAt": r.updated_at,
        }
        for r, username in rows
    ]


def user_rating(db: Session, tool_id: int, user_id: int) -> ToolRating | None:
    return (
        db.query(ToolRating)
        .filter(ToolRating.tool_id == tool_id, ToolRating.user_id == user_id)
        .first()
    )
