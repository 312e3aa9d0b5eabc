import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from eprojects.auth.security import (
    Principal,
    can_access_tool,
    get_optional_principal,
    get_principal,
    require_admin,
    require_tier,
)
from eprojects.database import get_db
from eprojects.models.tool import Tool
from eprojects.schemas.tool import RatingOut, RatingRequest, ToolCreate, ToolOut, ToolUpdate
from eprojects.services import ratings
from eprojects.users.tiers import BASIC

logger = logging.getLogger("eprojects.tools")

router = APIRouter(prefix="/api/tools", tags=["Ferramentas"])


def _get_tool(db: Session, tool_id: int) -> Tool:
    tool = db.query(Tool).filter(Tool.id == tool_id).first()
    if not tool:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Ferramenta não encontrada")
    return tool


def _validate_link(link_type: str, link: str | None, custom_html: str | None) -> None:
    if link_type != "custom" and not link:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="O link é obrigatório para ferramentas com tipo de link externo ou interno.",
        )
    if link_type == "custom" and not custom_html:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="O HTML personalizado é obrigatório para ferramentas com tipo de link personalizado.",
        )


def tool_view(tool: Tool, principal: Principal | None) -> ToolOut:
    """Ferramenta como o chamador a enxerga: bloqueada sem link nem HTML."""
    item = ToolOut.model_validate(tool)
    item.locked = not can_access_tool(tool, principal)
    if item.locked:
        item.link = ""
        item.custom_html = None
    if principal is None or not principal.is_admin:
        item.restricted_cpfs = None
    return item


@router.get("", response_model=list[ToolOut])
async def list_tools(
    db: Session = Depends(get_db),
    principal: Principal | None = Depends(get_optional_principal),
):
    tools = db.query(Tool).order_by(Tool.id.asc()).all()
    return [tool_view(t, principal) for t in tools]


@router.get("/{tool_id}", response_model=ToolOut)
async def get_tool(
    tool_id: int,
    db: Session = Depends(get_db),
    principal: Principal | None = Depends(get_optional_principal),
):
    return tool_view(_get_tool(db, tool_id), principal)


@router.get("/{tool_id}/access")
async def tool_access(
    tool_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    tool = _get_tool(db, tool_id)
    if not can_access_tool(tool, principal):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Esta ferramenta requer o plano {tool.access_level}",
        )

    return {
        "toolId": tool.id,
        "linkType": tool.link_type,
        "link": tool.link,
        "customHtml": tool.custom_html,
        "showInIframe": tool.show_in_iframe,
    }


@router.post("", response_model=ToolOut, status_code=status.HTTP_201_CREATED)
async def create_tool(
    payload: ToolCreate,
    db: Session = Depends(get_db),
    admin: Principal = Depends(require_admin),
):
    _validate_link(payload.link_type, payload.link, payload.custom_html)

    tool = Tool(**payload.model_dump(), created_by=admin.user.id)
    db.add(tool)
    db.commit()
    db.refresh(tool)
    logger.info("Ferramenta criada: %s (%s) por %s", tool.id, tool.name, admin.user.id)
    return tool_view(tool, admin)


@router.patch("/{tool_id}", response_model=ToolOut)
async def update_tool(
    tool_id: int,
    payload: ToolUpdate,
    db: Session = Depends(get_db),
    admin: Principal = Depends(require_admin),
):
    tool = _get_tool(db, tool_id)
    data = payload.changes()

    # Só revalida o link quando o tipo muda junto
    if "link_type" in data:
        _validate_link(data["link_type"], data.get("link", tool.link), data.get("custom_html", tool.custom_html))

    for field, value in data.items():
        setattr(tool, field, value)
    db.commit()
    db.refresh(tool)
    return tool_view(tool, admin)


@router.delete("/{tool_id}")
async def delete_tool(
    tool_id: int,
    db: Session = Depends(get_db),
    admin: Principal = Depends(require_admin),
):
    tool = _get_tool(db, tool_id)
    db.delete(tool)
    db.commit()
    logger.info("Ferramenta %s excluída por %s", tool_id, admin.user.id)
    return {"success": True, "message": "Ferramenta excluída com sucesso"}


@router.post("/{tool_id}/rate")
async def rate_tool(
    tool_id: int,
    payload: RatingRequest,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_tier(BASIC)),
):
    tool = _get_tool(db, tool_id)
    ratings.rate_tool(db, tool, principal.user, payload.rating, payload.comment)
    return {
        "success": True,
        "message": "Avaliação salva com sucesso",
        "averageRating": float(tool.average_rating or 0),
        "totalRatings": tool.total_ratings,
    }


@router.get("/{tool_id}/ratings")
async def tool_ratings(tool_id: int, db: Session = Depends(get_db)):
    _get_tool(db, tool_id)
    return ratings.tool_ratings(db, tool_id)


@router.get("/{tool_id}/user-rating", response_model=RatingOut | None)
async def user_rating(
    tool_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    return ratings.user_rating(db, tool_id, principal.user.id)
