from __future__ import annotations

import argparse
import asyncio
import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.core.config import settings
from helpdesk.core.logging import setup_logging
from helpdesk.core.security import hash_password
from helpdesk.db.models import Category, RoleEnum, User
from helpdesk.db.session import AsyncSessionLocal, engine

log = logging.getLogger("helpdesk.bootstrap")

DEFAULT_CATEGORIES = (
    ("General", "General questions and requests", "#6b7280"),
    ("Technical", "Bugs, errors and technical problems", "#2563eb"),
    ("Billing", "Invoices, payments and refunds", "#16a34a"),
    ("Account", "Login, profile and access issues", "#d97706"),
)

DEMO_AGENT = ("agent@example.com", "Agent123!", "Demo Agent")
DEMO_USER = ("user@example.com", "User123!", "Demo User")


# ---------- helpers ----------
async def _get_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
    res = await db.execute(select(User).where(User.email == email))
    return res.scalar_one_or_none()


async def ensure_user(
    db: AsyncSession,
    *,
    email: str,
    role: RoleEnum,
    password_plain: str,
    full_name: Optional[str],
) -> User:
    """
    Create the user if missing. An existing user gets its role and name
    brought in line; the password is left alone.
    """
    email = email.strip().lower()
    user = await _get_user_by_email(db, email)

    if user is None:
        user = User(
            email=email,
            password_hash=hash_password(password_plain),
            full_name=full_name or "",
            role=role,
        )
        db.add(user)
        await db.commit()
        await db.refresh(user)
        log.info("bootstrap_user_created email=%s role=%s", email, role.value)
        return user

    changed = False
    if user.role != role:
        user.role = role
        changed = True
    if full_name and user.full_name != full_name:
        user.full_name = full_name
        changed = True

    if changed:
        await db.commit()
        await db.refresh(user)
        log.info("bootstrap_user_updated email=%s", email)
    else:
        log.info("bootstrap_user_unchanged email=%s role=%s", email, user.role.value)
    return user


async def ensure_categories(db: AsyncSession) -> int:
    """Insert the default categories that do not exist yet; returns how many were added."""
    existing = set((await db.execute(select(Category.name))).scalars().all())
    added = 0
    for name, description, color in DEFAULT_CATEGORIES:
        if name in existing:
            continue
        db.add(Category(name=name, description=description, color=color))
        added += 1
    if added:
        await db.commit()
    log.info("bootstrap_categories added=%s", added)
    return added


async def seed(
    db: AsyncSession,
    *,
    admin_email: str,
    admin_password: str,
    admin_name: Optional[str],
    make_demo_agent: bool,
    make_demo_user: bool,
) -> None:
    await ensure_user(
        db,
        email=admin_email,
        role=RoleEnum.admin,
        password_plain=admin_password,
        full_name=admin_name,
    )

    if make_demo_agent:
        email, password, name = DEMO_AGENT
        await ensure_user(db, email=email, role=RoleEnum.agent, password_plain=password, full_name=name)

    if make_demo_user:
        email, password, name = DEMO_USER
        await ensure_user(db, email=email, role=RoleEnum.user, password_plain=password, full_name=name)

    await ensure_categories(db)
    log.info("bootstrap_done")


async def _run(**kwargs) -> None:
    async with AsyncSessionLocal() as db:
        await seed(db, **kwargs)
    await engine.dispose()


def _parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Seed the admin account, demo users and default categories")
    p.add_argument("email", nargs="?", default=settings.admin_email, help="Admin email")
    p.add_argument("password", nargs="?", default=settings.admin_password, help="Admin password")
    p.add_argument("-n", "--name", default=settings.admin_name, help="Admin full name")

    p.add_argument("--demo-agent", dest="demo_agent", action="store_true", help="Create the demo agent")
    p.add_argument("--no-demo-agent", dest="demo_agent", action="store_false", help="Skip the demo agent")
    p.set_defaults(demo_agent=settings.create_demo_agent)

    p.add_argument("--demo-user", dest="demo_user", action="store_true", help="Create the demo user")
    p.add_argument("--no-demo-user", dest="demo_user", action="store_false", help="Skip the demo user")
    p.set_defaults(demo_user=settings.create_demo_user)

    return p.parse_args()


def main() -> None:
    setup_logging(settings.log_level)
    args = _parse_args()

    if not args.email:
        raise SystemExit("Error: admin email is not set (argument or ADMIN_EMAIL in .env)")
    if not args.password:
        raise SystemExit("Error: admin password is not set (argument or ADMIN_PASSWORD in .env)")

    asyncio.run(
        _run(
            admin_email=args.email,
            admin_password=args.password,
            admin_name=args.name,
            make_demo_agent=args.demo_agent,
            make_demo_user=args.demo_user,
        )
    )


if __name__ == "__main__":
    main()
