# helpdesk/api/routes/reference.py
from fastapi import APIRouter
from sqlalchemy import select

from helpdesk.api.deps import CurrentPrincipal, DBDep
from helpdesk.db.models import Category
from helpdesk.schemas.categories import CategoriesOut, CategoryOut
from helpdesk.schemas.users import AgentsOut, UserBrief
from helpdesk.services import users as users_service

router = APIRouter()


@router.get("/categories", response_model=CategoriesOut)
async def list_categories(db: DBDep):
    # public: the signup and ticket forms need it
    rows = (await db.execute(select(Category).order_by(Category.name.asc()))).scalars().all()
    return CategoriesOut(categories=[CategoryOut.model_validate(c) for c in rows])


@router.get("/agents", response_model=AgentsOut)
async def list_agents(db: DBDep, current: CurrentPrincipal):
    rows = await users_service.list_agents(db, current)
    return AgentsOut(agents=[UserBrief.model_validate(u) for u in rows])
