# crm/core/idempotency.py
from hashlib import sha256

import structlog
from sqlalchemy import select
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from crm.db.session import SessionLocal
from crm.models.tokens import IdempotencyKey

log = structlog.get_logger(__name__)

UNSAFE_METHODS = {"POST", "PUT", "PATCH", "DELETE"}


class IdempotencyMiddleware(BaseHTTPMiddleware):
    """
    Repetições com o mesmo ``Idempotency-Key`` (mesmo método, rota e corpo)
    recebem a resposta gravada na primeira vez. Evita envio duplo de campanha.
    """

    async def dispatch(self, request: Request, call_next):
        if request.method not in UNSAFE_METHODS:
            return await call_next(request)

        key = request.headers.get("Idempotency-Key")
        if not key:
            return await call_next(request)

        body = await request.body()
        signature = sha256(request.method.encode() + request.url.path.encode() + body).hexdigest()
        with SessionLocal() as db:
            exists = db.scalar(select(IdempotencyKey).where(IdempotencyKey.key == key,
                                                            IdempotencyKey.signature == signature))
            if exists:
                log.info("idempotency.replay", key=key, path=request.url.path)
                return Response(content=exists.response_body, media_type=exists.response_mime,
                                status_code=exists.status_code)

        response = await call_next(request)
        payload = b""
        async for chunk in response.body_iterator:
            payload += chunk
        # erro interno não é gravado: a próxima tentativa executa de novo
        if response.status_code < 500:
            with SessionLocal() as db:
                db.add(IdempotencyKey(key=key, signature=signature, response_body=payload,
                                      response_mime=response.headers.get("content-type", "application/json"),
                                      status_code=response.status_code))
                db.commit()
        return Response(content=payload, status_code=response.status_code, headers=dict(response.headers))
