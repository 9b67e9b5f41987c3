# crm/db/init_db.py
from sqlalchemy import select
from sqlalchemy.orm import Session

from crm.core.rbac import ROLE_ADMIN, ROLE_NAMES
from crm.core.security_password import hash_password
from crm.models.account import Account
from crm.models.user import Role, User
from crm.services.tasks import seed_default_statuses

DEMO_SLUG = "demo"
DEMO_ADMIN_EMAIL = "admin@demo.com"
DEMO_ADMIN_PASSWORD = "admin123"


def seed_roles(db: Session) -> dict[str, Role]:
    roles = {r.name: r for r in db.scalars(select(Role)).all()}
    for name in ROLE_NAMES:
        if name not in roles:
            r = Role(name=name)
            db.add(r)
            db.flush()
            roles[name] = r
    return roles


def init_db(db: Session) -> None:
    """Seed idempotente: papéis, conta demo, admin demo e colunas do kanban."""
    roles = seed_roles(db)

    account = db.scalar(select(Account).where(Account.slug == DEMO_SLUG))
    if not account:
        account = Account(name="Conta Demo", slug=DEMO_SLUG, onboarding_data={})
        db.add(account)
        db.flush()

    admin = db.scalar(select(User).where(User.account_id == account.id, User.email == DEMO_ADMIN_EMAIL))
    if not admin:
        admin = User(
            account_id=account.id,
            name="Admin Demo",
            email=DEMO_ADMIN_EMAIL,
            hashed_password=hash_password(DEMO_ADMIN_PASSWORD),
            status="active",
        )
        db.add(admin)
        db.flush()
        admin.roles.append(roles[ROLE_ADMIN])

    seed_default_statuses(db, account.id)
    db.commit()
