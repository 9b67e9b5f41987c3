# crm/models/__init__.py
# Carrega todos os módulos para registrar as tabelas no metadata
# (usado por migrations/env.py e pelo create_all dos testes).
from crm.db.base import Base  # noqa: F401
from crm.models.account import Account  # noqa: F401
from crm.models.user import User, Role, user_roles  # noqa: F401
from crm.models.tokens import RefreshToken, IdempotencyKey  # noqa: F401
from crm.models.client import Client, ClientFollowup  # noqa: F401
from crm.models.product import Product  # noqa: F401
from crm.models.contract import Contract  # noqa: F401
from crm.models.custom_field import CustomField, ClientFieldValue  # noqa: F401
from crm.models.event import Event, EventParticipant, Attendance, event_products  # noqa: F401
from crm.models.task import Task, TaskStatus  # noqa: F401
from crm.models.campaign import ReminderCampaign, ReminderRecipient  # noqa: F401
from crm.models.whatsapp_group import WhatsAppGroup  # noqa: F401
from crm.models.integration import Integration, SyncJob  # noqa: F401
