# crm/services/messages.py
from __future__ import annotations

from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo

from jinja2 import Environment, BaseLoader, select_autoescape

from crm.core.clock import as_utc
from crm.core.config import settings

_EMAIL_TEMPLATE = """\
<div style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
  <div style="background: linear-gradient(135deg, #667eea 0%, #764ba2 100%); padding: 30px; border-radius: 12px 12px 0 0;">
    <h1 style="color: white; margin: 0; font-size: 24px;">{{ subject }}</h1>
  </div>
  <div style="background: #ffffff; padding: 30px; border: 1px solid #e5e7eb; border-top: none; border-radius: 0 0 12px 12px;">
    <div style="line-height: 1.6; color: #374151;">
      {% for line in lines %}{{ line }}{% if not loop.last %}<br>{% endif %}{% endfor %}
    </div>
  </div>
  <div style="text-align: center; padding: 20px; color: #9ca3af; font-size: 12px;">
    <p>Este é um lembrete automático.</p>
  </div>
</div>
"""

_env = Environment(loader=BaseLoader(), autoescape=select_autoescape(["html", "xml"], default_for_string=True))
_email_tpl = _env.from_string(_EMAIL_TEMPLATE)


def event_date_label(scheduled_at: Optional[datetime]) -> str:
    if scheduled_at is None:
        return ""
    local = as_utc(scheduled_at).astimezone(ZoneInfo(settings.TIMEZONE))
    return local.strftime("%d/%m/%Y %H:%M")


def links_for(event_id: int, checkin_code: Optional[str], participant_id: Optional[int]) -> dict[str, str]:
    base = settings.APP_URL
    return {
        "link_rsvp": f"{base}/rsvp/{participant_id}",
        "link_checkin": f"{base}/checkin/{checkin_code or 'code'}",
        "link_feedback": f"{base}/feedback/{event_id}?p={participant_id}",
    }


def personalize(template: str, *, name: str, event_title: str, event_id: int,
                scheduled_at: Optional[datetime] = None, checkin_code: Optional[str] = None,
                participant_id: Optional[int] = None) -> str:
    values = {
        "nome": name,
        "evento": event_title,
        "data": event_date_label(scheduled_at),
        **links_for(event_id, checkin_code, participant_id),
    }
    text = template
    for key, value in values.items():
        text = text.replace("{" + key + "}", value)
    return text


def render_email_html(subject: str, message: str) -> str:
    return _email_tpl.render(subject=subject, lines=message.split("\n"))
