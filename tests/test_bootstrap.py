import pytest
from sqlalchemy import func, select

from helpdesk.core.security import verify_password
from helpdesk.db.models import Category, RoleEnum, User
from helpdesk.scripts.bootstrap_admin import DEFAULT_CATEGORIES, ensure_user, seed


@pytest.mark.asyncio
async def test_seed_is_idempotent(db):
    kwargs = dict(
        admin_email="Root@Acme.io",
        admin_password="rootpass",
        admin_name="Root",
        make_demo_agent=True,
        make_demo_user=False,
    )
    await seed(db, **kwargs)
    await seed(db, **kwargs)

    users = (await db.execute(select(User).order_by(User.id))).scalars().all()
    assert [(u.email, u.role) for u in users] == [
        ("root@acme.io", RoleEnum.admin),
        ("agent@example.com", RoleEnum.agent),
    ]
    assert verify_password("rootpass", users[0].password_hash)

    names = (await db.execute(select(Category.name))).scalars().all()
    assert sorted(names) == sorted(name for name, _, _ in DEFAULT_CATEGORIES)
    assert (await db.execute(select(func.count(Category.id)))).scalar_one() == 4


@pytest.mark.asyncio
async def test_ensure_user_promotes_existing_account(db):
    await ensure_user(db, email="x@acme.io", role=RoleEnum.user, password_plain="pw123456", full_name="X")
    user = await ensure_user(db, email="x@acme.io", role=RoleEnum.admin, password_plain="ignored", full_name="X")

    assert user.role == RoleEnum.admin
    # existing password is kept
    assert verify_password("pw123456", user.password_hash)
