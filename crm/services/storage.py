# crm/services/storage.py
"""
Armazenamento de arquivos: grava em ``DATA_DIR/public/<bucket>/...`` e
devolve a URL pública servida em ``/static``.
"""
from __future__ import annotations

import os
import re
import uuid
from dataclasses import dataclass
from typing import Optional

import structlog

from crm.core.config import settings
from crm.core.errors import ValidationFailed

log = structlog.get_logger(__name__)

PUBLIC_DIR = os.path.join(settings.DATA_DIR, "public")
MAX_UPLOAD_BYTES = 10 * 1024 * 1024

_SAFE = re.compile(r"[^A-Za-z0-9._-]+")


@dataclass(frozen=True)
class StoredFile:
    path: str
    url: str
    name: str


def public_url(relative: str) -> str:
    return f"{settings.PUBLIC_BASE_URL}/static/{relative}"


def safe_name(filename: str) -> str:
    base = os.path.basename(filename or "arquivo")
    return _SAFE.sub("_", base).strip("._") or "arquivo"


def save(bucket: str, folder: str, filename: str, content: bytes,
         content_type: Optional[str] = None, allowed_types: Optional[set[str]] = None) -> StoredFile:
    if not content:
        raise ValidationFailed("Arquivo vazio.")
    if len(content) > MAX_UPLOAD_BYTES:
        raise ValidationFailed("O arquivo deve ter no máximo 10MB.")
    if allowed_types is not None and content_type not in allowed_types:
        raise ValidationFailed("Tipo de arquivo não permitido.", details={"content_type": content_type})

    name = safe_name(filename)
    relative = f"{bucket}/{folder}/{uuid.uuid4().hex[:8]}_{name}"
    path = os.path.join(PUBLIC_DIR, *relative.split("/"))
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "wb") as fh:
        fh.write(content)
    log.info("storage.saved", bucket=bucket, path=relative, size=len(content))
    return StoredFile(path=relative, url=public_url(relative), name=filename or name)


def save_contract_pdf(account_id: int, client_id: int, filename: str, content: bytes,
                      content_type: Optional[str]) -> StoredFile:
    if content_type != "application/pdf" and not (filename or "").lower().endswith(".pdf"):
        raise ValidationFailed("Apenas arquivos PDF são permitidos.")
    return save("contracts", f"{account_id}/{client_id}", filename, content)
