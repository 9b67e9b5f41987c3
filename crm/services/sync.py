# crm/services/sync.py
"""
Importação em lote de clientes de fontes externas.

- Pool de threads limitado (``SYNC_MAX_WORKERS``); cada item usa sessão própria.
  Itens com o mesmo telefone vão para a mesma thread, em sequência.
- Retry por item com backoff exponencial (``SYNC_MAX_RETRIES``) em falhas
  transitórias (provedor fora / banco ocupado). Dados inválidos não repetem.
- Checkpoint em ``SyncJob``: ids já processados e contadores são gravados a
  cada item concluído; um job interrompido retoma pulando esses ids.
"""
from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Optional

import backoff
import structlog
from sqlalchemy import select
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from crm.core.clock import utcnow
from crm.core.config import settings
from crm.core.errors import CRMError, TemporaryIntegrationError, ValidationFailed
from crm.core.validators import normalize_phone_e164, only_digits, validate_cnpj, validate_cpf, format_cnpj, format_cpf
from crm.db.session import SessionLocal
from crm.models.client import Client
from crm.models.integration import Integration, SyncJob
from crm.services.integrations import ClientSource, ExternalClient

log = structlog.get_logger(__name__)

TRANSIENT = (TemporaryIntegrationError, OperationalError)


# ----------------------------------------------------------------------
# Item
# ----------------------------------------------------------------------
def _documents(raw: Optional[str]) -> dict:
    digits = only_digits(raw)
    if len(digits) == 11 and validate_cpf(digits):
        return {"cpf": format_cpf(digits)}
    if len(digits) == 14 and validate_cnpj(digits):
        return {"cnpj": format_cnpj(digits)}
    return {}


def upsert_client(db: Session, account_id: int, source: str, item: ExternalClient) -> Client:
    phone = normalize_phone_e164(item.phone)
    if not phone:
        raise ValidationFailed("Telefone ausente", details={"external_id": item.external_id})

    client = db.scalar(select(Client).where(
        Client.account_id == account_id, Client.external_source == source, Client.external_id == item.external_id,
    ))
    if client is None:
        # mesmo telefone já cadastrado: vincula em vez de duplicar
        client = db.scalar(select(Client).where(Client.account_id == account_id, Client.phone_e164 == phone))
    if client is None:
        client = Client(account_id=account_id, full_name=item.full_name, phone_e164=phone, status="active")
        db.add(client)

    client.external_source = source
    client.external_id = item.external_id
    client.full_name = item.full_name or client.full_name
    if item.email and not any(e.get("email") == item.email for e in client.emails or []):
        client.emails = [*(client.emails or []), {"email": item.email, "type": "main" if not client.emails else "other"}]
    if item.company_name:
        client.company_name = item.company_name
    for key, value in _documents(item.document).items():
        setattr(client, key, value)
    db.commit()
    return client


def _import_one(session_factory: Callable[[], Session], account_id: int, source: str, item: ExternalClient) -> None:
    @backoff.on_exception(backoff.expo, TRANSIENT, max_tries=lambda: max(1, settings.SYNC_MAX_RETRIES), jitter=None,
                          factor=0.2)
    def attempt() -> None:
        with session_factory() as db:
            upsert_client(db, account_id, source, item)

    attempt()


def _import_batch(session_factory: Callable[[], Session], account_id: int, source: str,
                  batch: list[ExternalClient]) -> list[tuple[ExternalClient, Optional[str]]]:
    """Itens com o mesmo telefone, em sequência; devolve (item, erro) de cada um."""
    results = []
    for item in batch:
        try:
            _import_one(session_factory, account_id, source, item)
            error = None
        except CRMError as exc:
            error = exc.message
        except OperationalError as exc:
            error = str(exc.orig or exc)
        except Exception as exc:  # item com dado inesperado: falha só ele
            log.exception("sync.item_unexpected_error", external_id=item.external_id)
            error = str(exc) or exc.__class__.__name__
        results.append((item, error))
    return results


def _batches(items: list[ExternalClient]) -> list[list[ExternalClient]]:
    """Agrupa por telefone normalizado: o mesmo número nunca roda em duas threads."""
    groups: dict[str, list[ExternalClient]] = {}
    for item in items:
        key = normalize_phone_e164(item.phone) or f"id:{item.external_id}"
        groups.setdefault(key, []).append(item)
    return list(groups.values())


# ----------------------------------------------------------------------
# Job / checkpoint
# ----------------------------------------------------------------------
def start_or_resume(db: Session, account_id: int, integration_type: str) -> SyncJob:
    job = db.scalar(
        select(SyncJob)
        .where(SyncJob.account_id == account_id, SyncJob.integration_type == integration_type,
               SyncJob.status.in_(("pending", "running")))
        .order_by(SyncJob.id.desc())
    )
    if job is None:
        job = SyncJob(account_id=account_id, integration_type=integration_type, status="pending",
                      processed_ids=[], errors=[])
        db.add(job)
        db.commit()
        db.refresh(job)
    return job


def _checkpoint(db: Session, job: SyncJob, external_id: str, error: Optional[str]) -> None:
    job.processed_ids = [*(job.processed_ids or []), external_id]
    if error is None:
        job.success_count += 1
    else:
        job.fail_count += 1
        job.errors = [*(job.errors or []), {"external_id": external_id, "error": error}]
    db.commit()


def _fail(db: Session, job: SyncJob, account_id: int, integration_type: str, message: str) -> int:
    job.status = "failed"
    job.errors = [*(job.errors or []), {"external_id": None, "error": message}]
    job.finished_at = utcnow()
    db.commit()
    _mark_integration(db, account_id, integration_type, message)
    log.warning("sync.failed", job_id=job.id, error=message)
    return job.id


def run_sync(account_id: int, integration_type: str, source: ClientSource,
             session_factory: Callable[[], Session] = SessionLocal,
             max_workers: Optional[int] = None) -> int:
    """Executa (ou retoma) a importação; devolve o id do ``SyncJob``."""
    with session_factory() as db:
        job = start_or_resume(db, account_id, integration_type)
        job.status = "running"
        job.started_at = job.started_at or utcnow()
        db.commit()
        done = set(job.processed_ids or [])

        try:
            items = [i for i in source.iter_clients() if i.external_id not in done]
        except CRMError as exc:
            return _fail(db, job, account_id, integration_type, exc.message)
        except Exception as exc:  # resposta fora do formato esperado
            log.exception("sync.fetch_unexpected_error", job_id=job.id)
            return _fail(db, job, account_id, integration_type, str(exc) or exc.__class__.__name__)

        job.total = len(done) + len(items)
        db.commit()
        log.info("sync.started", job_id=job.id, source=integration_type, pending=len(items), resumed=len(done))

        workers = max(1, max_workers or settings.SYNC_MAX_WORKERS)
        try:
            with ThreadPoolExecutor(max_workers=workers) as pool:
                futures = [pool.submit(_import_batch, session_factory, account_id, integration_type, batch)
                           for batch in _batches(items)]
                for future in as_completed(futures):
                    for item, error in future.result():
                        if error:
                            log.warning("sync.item_failed", job_id=job.id, external_id=item.external_id, error=error)
                        _checkpoint(db, job, item.external_id, error)
        except Exception as exc:
            db.rollback()
            _fail(db, job, account_id, integration_type, str(exc) or exc.__class__.__name__)
            raise

        job.status = "completed"
        job.finished_at = utcnow()
        db.commit()
        _mark_integration(db, account_id, integration_type, None)
        log.info("sync.completed", job_id=job.id, success=job.success_count, failed=job.fail_count)
        return job.id


def _mark_integration(db: Session, account_id: int, integration_type: str, error: Optional[str]) -> None:
    integration = db.scalar(select(Integration).where(
        Integration.account_id == account_id, Integration.type == integration_type,
    ))
    if integration is None:
        return
    integration.last_sync_at = utcnow()
    integration.last_error = error
    if error:
        integration.status = "error"
    db.commit()
