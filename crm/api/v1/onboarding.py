# crm/api/v1/onboarding.py
from fastapi import APIRouter, Depends

from crm.core.context import RequestContext
from crm.core.rbac import ROLE_ADMIN, require_roles
from crm.schemas.onboarding import OnboardingDataIn, OnboardingState
from crm.services import onboarding as svc

router = APIRouter()

# o assistente de onboarding é do dono da conta
admin_only = require_roles(ROLE_ADMIN)


@router.get("", response_model=OnboardingState)
def get_state(ctx: RequestContext = Depends(admin_only)):
    return svc.state(ctx.account)


@router.put("/data", response_model=OnboardingState)
def update_data(body: OnboardingDataIn, ctx: RequestContext = Depends(admin_only)):
    return svc.update_data(ctx.db, ctx.account, body.model_dump(exclude_unset=True))


@router.post("/next", response_model=OnboardingState)
def next_step(ctx: RequestContext = Depends(admin_only)):
    return svc.next_step(ctx.db, ctx.account)


@router.post("/prev", response_model=OnboardingState)
def prev_step(ctx: RequestContext = Depends(admin_only)):
    return svc.prev_step(ctx.db, ctx.account)


@router.post("/skip", response_model=OnboardingState)
def skip_step(ctx: RequestContext = Depends(admin_only)):
    return svc.skip_step(ctx.db, ctx.account)


@router.post("/achievements/dismiss", response_model=OnboardingState)
def dismiss_achievement(ctx: RequestContext = Depends(admin_only)):
    return svc.dismiss_achievement(ctx.db, ctx.account)
