# crm/api/v1/integrations.py
from typing import List

from fastapi import APIRouter, BackgroundTasks, Depends, status

from crm.core.context import RequestContext
from crm.core.errors import NotFoundError, ValidationFailed
from crm.core.rbac import ROLE_ADMIN, require_roles
from crm.models.integration import Integration, SyncJob
from crm.schemas.integration import IntegrationOut, IntegrationType, IntegrationUpsert, SyncJobOut
from crm.services import integrations as svc
from crm.services.sync import run_sync, start_or_resume

router = APIRouter()

admin_only = require_roles(ROLE_ADMIN)

SYNCABLE = ("pipedrive", "omie")


def _out(i: Integration) -> IntegrationOut:
    return IntegrationOut(id=i.id, type=i.type, status=i.status, config=svc.mask_config(i.config),
                          last_sync_at=i.last_sync_at, last_error=i.last_error)


@router.get("", response_model=List[IntegrationOut])
def list_integrations(ctx: RequestContext = Depends(admin_only)):
    rows = ctx.db.query(Integration).filter(Integration.account_id == ctx.account_id).order_by(Integration.type).all()
    return [_out(i) for i in rows]


@router.get("/sync-jobs", response_model=List[SyncJobOut])
def list_sync_jobs(ctx: RequestContext = Depends(admin_only)):
    return (ctx.db.query(SyncJob).filter(SyncJob.account_id == ctx.account_id)
            .order_by(SyncJob.id.desc()).limit(20).all())


@router.get("/sync-jobs/{job_id}", response_model=SyncJobOut)
def get_sync_job(job_id: int, ctx: RequestContext = Depends(admin_only)):
    job = ctx.db.get(SyncJob, job_id)
    if job is None or job.account_id != ctx.account_id:
        raise NotFoundError("Sincronização não encontrada")
    return job


@router.get("/{type_}", response_model=IntegrationOut)
def get_integration(type_: IntegrationType, ctx: RequestContext = Depends(admin_only)):
    row = svc.get_integration(ctx.db, ctx.account_id, type_)
    if row is None:
        raise NotFoundError("Integração não configurada.")
    return _out(row)


@router.put("/{type_}", response_model=IntegrationOut)
def upsert_integration(type_: IntegrationType, body: IntegrationUpsert, ctx: RequestContext = Depends(admin_only)):
    row = svc.get_integration(ctx.db, ctx.account_id, type_)
    if row is None:
        row = Integration(account_id=ctx.account_id, type=type_, config={})
        ctx.db.add(row)
    row.config = svc.merge_config(row.config, body.config)
    if body.status:
        row.status = body.status
        if body.status == "connected":
            row.last_error = None
    ctx.db.commit()
    ctx.db.refresh(row)
    return _out(row)


@router.delete("/{type_}", status_code=status.HTTP_204_NO_CONTENT)
def delete_integration(type_: IntegrationType, ctx: RequestContext = Depends(admin_only)):
    row = svc.get_integration(ctx.db, ctx.account_id, type_)
    if row is None:
        raise NotFoundError("Integração não configurada.")
    ctx.db.delete(row)
    ctx.db.commit()


@router.post("/{type_}/sync", response_model=SyncJobOut, status_code=status.HTTP_202_ACCEPTED)
def start_sync(type_: IntegrationType, background: BackgroundTasks, ctx: RequestContext = Depends(admin_only)):
    if type_ not in SYNCABLE:
        raise ValidationFailed("Esta integração não importa clientes.")
    source = svc.source_for(svc.get_integration(ctx.db, ctx.account_id, type_))
    # cria (ou retoma) o job já aqui para o front acompanhar pelo id
    job = start_or_resume(ctx.db, ctx.account_id, type_)
    background.add_task(run_sync, ctx.account_id, type_, source)
    return job
