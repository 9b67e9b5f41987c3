# crm/services/notifiers/base.py
import time
from abc import ABC, abstractmethod
from http import HTTPStatus

import backoff
import httpx
import structlog
from prometheus_client import Counter, Histogram

from crm.core.config import settings
from crm.core.errors import PermanentNotificationError, TemporaryNotificationError

logger = structlog.get_logger(__name__)

REQ_LATENCY = Histogram("crm_notifier_request_seconds", "Latency", ["provider", "channel"])
REQ_SUCCESS = Counter("crm_notifier_success_total", "Success", ["provider", "channel"])
REQ_FAILURE = Counter("crm_notifier_failure_total", "Failure", ["provider", "channel"])


def _error_text(resp: httpx.Response) -> str:
    try:
        data = resp.json()
    except ValueError:
        return (resp.text or "").strip()[:200] or "Erro ao enviar"
    if isinstance(data, dict):
        msg = data.get("message") or data.get("error")
        if isinstance(msg, (list, tuple)):
            msg = "; ".join(str(m) for m in msg)
        if msg:
            return str(msg)
    return "Erro ao enviar"


class BaseNotifier(ABC):
    """
    Cliente HTTP dos provedores de mensagem.

    5xx / timeout / rede -> TemporaryNotificationError (com retry exponencial)
    4xx                  -> PermanentNotificationError (sem retry)
    """

    def __init__(self, provider: str, channel: str, timeout: float | None = None) -> None:
        self.provider = provider
        self.channel = channel
        self.timeout = timeout or settings.NOTIFIER_TIMEOUT

    @backoff.on_exception(backoff.expo, TemporaryNotificationError, max_tries=3, jitter=None)
    def _request(self, method: str, url: str, **kw) -> httpx.Response:
        start = time.perf_counter()
        try:
            resp = httpx.request(method, url, timeout=self.timeout, **kw)
        except httpx.TransportError as exc:
            REQ_FAILURE.labels(self.provider, self.channel).inc()
            raise TemporaryNotificationError(str(exc) or "Falha de conexão") from exc
        finally:
            REQ_LATENCY.labels(self.provider, self.channel).observe(time.perf_counter() - start)

        if resp.status_code >= HTTPStatus.INTERNAL_SERVER_ERROR:
            REQ_FAILURE.labels(self.provider, self.channel).inc()
            raise TemporaryNotificationError(_error_text(resp), details={"status": resp.status_code})
        if resp.status_code >= HTTPStatus.BAD_REQUEST:
            REQ_FAILURE.labels(self.provider, self.channel).inc()
            raise PermanentNotificationError(_error_text(resp), details={"status": resp.status_code})
        REQ_SUCCESS.labels(self.provider, self.channel).inc()
        return resp

    @abstractmethod
    def send(self, *args, **kwargs) -> None:
        """Envia uma mensagem. Assinatura varia por canal."""
        ...
