# crm/api/v1/router.py
from fastapi import APIRouter

from crm.api.v1 import (
    accounts,
    auth,
    campaigns,
    checkin,
    clients,
    contracts,
    custom_fields,
    events,
    integrations,
    internal,
    onboarding,
    products,
    tasks,
    users,
    whatsapp_groups,
)

api_router = APIRouter()

# -------- rotas sem tenant --------
api_router.include_router(accounts.public_router, prefix="/accounts",        tags=["accounts"])
api_router.include_router(checkin.router,         prefix="/public/checkin",  tags=["checkin-public"])
api_router.include_router(internal.router,        prefix="/internal",        tags=["internal"])

# -------- rotas com tenant --------
api_router.include_router(auth.router,            prefix="/{tenant}/auth",            tags=["auth"])
api_router.include_router(accounts.router,        prefix="/{tenant}/account",         tags=["accounts"])
api_router.include_router(users.router,           prefix="/{tenant}/users",           tags=["users"])
# /contracts/churn e /clients/{id}/contracts antes de /clients/{id}
api_router.include_router(contracts.router,       prefix="/{tenant}",                 tags=["contracts"])
api_router.include_router(clients.router,         prefix="/{tenant}/clients",         tags=["clients"])
api_router.include_router(custom_fields.router,   prefix="/{tenant}/custom-fields",   tags=["custom-fields"])
api_router.include_router(products.router,        prefix="/{tenant}/products",        tags=["products"])
api_router.include_router(events.router,          prefix="/{tenant}/events",          tags=["events"])
api_router.include_router(tasks.router,           prefix="/{tenant}/tasks",           tags=["tasks"])
api_router.include_router(campaigns.router,       prefix="/{tenant}/campaigns",       tags=["campaigns"])
api_router.include_router(onboarding.router,      prefix="/{tenant}/onboarding",      tags=["onboarding"])
api_router.include_router(whatsapp_groups.router, prefix="/{tenant}/whatsapp-groups", tags=["whatsapp"])
api_router.include_router(integrations.router,    prefix="/{tenant}/integrations",    tags=["integrations"])
