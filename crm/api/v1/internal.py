# crm/api/v1/internal.py
# Rotas chamadas pelo agendador (cron); protegidas pelo header X-Cron-Secret.
import secrets

from fastapi import APIRouter, BackgroundTasks, Depends, Header, HTTPException
from sqlalchemy.orm import Session

from crm.core.config import settings
from crm.db.session import get_db
from crm.services import campaigns as svc
from crm.services.notifiers.registry import NotifierFactory, get_notifier_factory

router = APIRouter()


def require_cron_secret(x_cron_secret: str = Header(None, alias="X-Cron-Secret")) -> None:
    if not x_cron_secret or not secrets.compare_digest(x_cron_secret, settings.CRON_SECRET):
        raise HTTPException(status_code=401, detail="Invalid cron secret")


@router.post("/campaigns/process-scheduled", dependencies=[Depends(require_cron_secret)])
def process_scheduled(
    background: BackgroundTasks,
    db: Session = Depends(get_db),
    factory: NotifierFactory = Depends(get_notifier_factory),
):
    ids = svc.claim_due(db)
    for campaign_id in ids:
        background.add_task(svc.process_campaign, campaign_id, factory)
    return {"processed": ids}
