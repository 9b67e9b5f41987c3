"""crm: esquema inicial (contas, clientes, contratos, eventos, tarefas, campanhas, integrações)

Revision ID: 20261018_crm_initial
Revises:
Create Date: 2026-10-18 09:00:00
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "20261018_crm_initial"
down_revision: Union[str, Sequence[str], None] = None
branch_labels = None
depends_on = None


def _ts(name: str, nullable: bool = True, now: bool = False) -> sa.Column:
    if now:
        return sa.Column(name, sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False)
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable)


def _pk(table: str) -> sa.PrimaryKeyConstraint:
    return sa.PrimaryKeyConstraint("id", name=f"pk_{table}")


def _fk(table: str, col: str, ref: str, ondelete: str | None = None) -> sa.ForeignKeyConstraint:
    return sa.ForeignKeyConstraint([col], [f"{ref}.id"], name=f"fk_{table}_{col}_{ref}", ondelete=ondelete)


def _ix(table: str, *cols: str, unique: bool = False) -> None:
    for col in cols:
        op.create_index(f"ix_{table}_{col}", table, [col], unique=unique)


def upgrade() -> None:
    op.create_table(
        "accounts",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(160), nullable=False),
        sa.Column("slug", sa.String(64), nullable=False),
        sa.Column("cnpj", sa.String(20)),
        sa.Column("logo_url", sa.String(255)),
        sa.Column("contact_email", sa.String(160)),
        sa.Column("contact_phone", sa.String(30)),
        sa.Column("welcome_message", sa.Text()),
        sa.Column("ai_analysis_enabled", sa.Boolean(), nullable=False),
        sa.Column("onboarding_step", sa.Integer(), nullable=False),
        sa.Column("onboarding_completed", sa.Boolean(), nullable=False),
        sa.Column("onboarding_data", sa.JSON(), nullable=False),
        sa.Column("config_json", sa.JSON(), nullable=False),
        _ts("created_at", now=True),
        _pk("accounts"),
    )
    _ix("accounts", "slug", unique=True)

    op.create_table(
        "roles",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(32), nullable=False),
        _pk("roles"),
        sa.UniqueConstraint("name", name="uq_roles_name"),
    )

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("account_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("email", sa.String(160), nullable=False),
        sa.Column("hashed_password", sa.String(255), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("avatar_url", sa.String(255)),
        _ts("created_at", now=True),
        _pk("users"),
        _fk("users", "account_id", "accounts"),
        sa.UniqueConstraint("account_id", "email", name="uq_users_account_email"),
    )
    _ix("users", "account_id", "email")

    op.create_table(
        "user_roles",
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("role_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], name="fk_user_roles_user_id_users", ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["role_id"], ["roles.id"], name="fk_user_roles_role_id_roles", ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("user_id", "role_id", name="pk_user_roles"),
        sa.UniqueConstraint("user_id", "role_id", name="uq_user_role"),
    )

    op.create_table(
        "refresh_tokens",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("jti", sa.String(64), nullable=False),
        sa.Column("user_email", sa.String(160), nullable=False),
        sa.Column("account_slug", sa.String(64), nullable=False),
        _ts("expires_at", nullable=False),
        _ts("revoked_at"),
        _pk("refresh_tokens"),
    )
    _ix("refresh_tokens", "jti", unique=True)

    op.create_table(
        "idempotency_keys",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("key", sa.String(80), nullable=False),
        sa.Column("signature", sa.String(80), nullable=False),
        sa.Column("response_body", sa.LargeBinary(), nullable=False),
        sa.Column("response_mime", sa.String(80), nullable=False),
        sa.Column("status_code", sa.Integer(), nullable=False),
        _pk("idempotency_keys"),
    )
    _ix("idempotency_keys", "key", "signature")

    op.create_table(
        "products",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("account_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("price", sa.Numeric(12, 2)),
        sa.Column("billing_period", sa.String(20)),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        _ts("created_at", now=True),
        _pk("products"),
        _fk("products", "account_id", "accounts"),
    )
    _ix("products", "account_id")

    op.create_table(
        "clients",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("account_id", sa.Integer(), nullable=False),
        sa.Column("full_name", sa.String(200), nullable=False),
        sa.Column("phone_e164", sa.String(20), nullable=False),
        sa.Column("additional_phones", sa.JSON(), nullable=False),
        sa.Column("emails", sa.JSON(), nullable=False),
        sa.Column("cpf", sa.String(14)),
        sa.Column("cnpj", sa.String(18)),
        sa.Column("company_name", sa.String(200)),
        sa.Column("birth_date", sa.Date()),
        sa.Column("zip_code", sa.String(9)),
        sa.Column("street", sa.String(200)),
        sa.Column("street_number", sa.String(20)),
        sa.Column("complement", sa.String(120)),
        sa.Column("neighborhood", sa.String(120)),
        sa.Column("city", sa.String(120)),
        sa.Column("state", sa.String(2)),
        sa.Column("business_address", sa.JSON(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("tags", sa.JSON(), nullable=False),
        sa.Column("notes", sa.Text()),
        sa.Column("avatar_url", sa.String(255)),
        sa.Column("responsible_user_id", sa.Integer()),
        sa.Column("external_source", sa.String(20)),
        sa.Column("external_id", sa.String(64)),
        _ts("created_at", now=True),
        _ts("updated_at", now=True),
        _pk("clients"),
        _fk("clients", "account_id", "accounts"),
        _fk("clients", "responsible_user_id", "users", ondelete="SET NULL"),
    )
    _ix("clients", "account_id", "phone_e164", "external_id")

    op.create_table(
        "client_followups",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("account_id", sa.Integer(), nullable=False),
        sa.Column("client_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer()),
        sa.Column("parent_id", sa.Integer()),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("title", sa.String(200)),
        sa.Column("content", sa.Text()),
        sa.Column("file_url", sa.String(255)),
        sa.Column("file_name", sa.String(200)),
        _ts("created_at", now=True),
        _pk("client_followups"),
        _fk("client_followups", "account_id", "accounts"),
        _fk("client_followups", "client_id", "clients", ondelete="CASCADE"),
        _fk("client_followups", "user_id", "users", ondelete="SET NULL"),
        _fk("client_followups", "parent_id", "client_followups", ondelete="CASCADE"),
    )
    _ix("client_followups", "account_id", "client_id")

    op.create_table(
        "client_contracts",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("account_id", sa.Integer(), nullable=False),
        sa.Column("client_id", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Integer()),
        sa.Column("parent_contract_id", sa.Integer()),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date()),
        sa.Column("value", sa.Numeric(12, 2)),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column("contract_type", sa.String(30), nullable=False),
        sa.Column("payment_option", sa.String(40)),
        sa.Column("notes", sa.Text()),
        sa.Column("file_url", sa.String(255)),
        sa.Column("file_name", sa.String(200)),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("status_reason", sa.Text()),
        _ts("status_changed_at"),
        _ts("created_at", now=True),
        _pk("client_contracts"),
        _fk("client_contracts", "account_id", "accounts"),
        _fk("client_contracts", "client_id", "clients", ondelete="CASCADE"),
        _fk("client_contracts", "product_id", "products", ondelete="SET NULL"),
        _fk("client_contracts", "parent_contract_id", "client_contracts", ondelete="SET NULL"),
    )
    _ix("client_contracts", "account_id", "client_id", "parent_contract_id")

    op.create_table(
        "custom_fields",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("account_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("field_type", sa.String(20), nullable=False),
        sa.Column("options", sa.JSON(), nullable=False),
        sa.Column("is_required", sa.Boolean(), nullable=False),
        sa.Column("display_order", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("show_in_clients", sa.Boolean(), nullable=False),
        _ts("created_at", now=True),
        _pk("custom_fields"),
        _fk("custom_fields", "account_id", "accounts"),
    )
    _ix("custom_fields", "account_id")

    op.create_table(
        "client_field_values",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("client_id", sa.Integer(), nullable=False),
        sa.Column("field_id", sa.Integer(), nullable=False),
        sa.Column("value_text", sa.Text()),
        sa.Column("value_number", sa.Numeric(14, 2)),
        sa.Column("value_boolean", sa.Boolean()),
        sa.Column("value_date", sa.Date()),
        sa.Column("value_json", sa.JSON()),
        _ts("updated_at", now=True),
        _pk("client_field_values"),
        _fk("client_field_values", "client_id", "clients", ondelete="CASCADE"),
        _fk("client_field_values", "field_id", "custom_fields", ondelete="CASCADE"),
        sa.UniqueConstraint("client_id", "field_id", name="uq_client_field_values_client_field"),
    )
    _ix("client_field_values", "client_id", "field_id")

    op.create_table(
        "events",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("account_id", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("event_type", sa.String(20), nullable=False),
        sa.Column("modality", sa.String(20), nullable=False),
        _ts("scheduled_at", nullable=False),
        _ts("ends_at"),
        sa.Column("duration_minutes", sa.Integer()),
        sa.Column("address", sa.String(255)),
        sa.Column("meeting_url", sa.String(500)),
        sa.Column("max_capacity", sa.Integer()),
        sa.Column("is_recurring", sa.Boolean(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("checkin_code", sa.String(6)),
        _ts("created_at", now=True),
        _pk("events"),
        _fk("events", "account_id", "accounts"),
        sa.UniqueConstraint("checkin_code", name="uq_events_checkin_code"),
    )
    _ix("events", "account_id")

    op.create_table(
        "event_products",
        sa.Column("event_id", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        _fk("event_products", "event_id", "events", ondelete="CASCADE"),
        _fk("event_products", "product_id", "products", ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("event_id", "product_id", name="pk_event_products"),
    )

    op.create_table(
        "event_participants",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("event_id", sa.Integer(), nullable=False),
        sa.Column("client_id", sa.Integer()),
        sa.Column("guest_name", sa.String(200)),
        sa.Column("guest_phone", sa.String(20)),
        sa.Column("guest_email", sa.String(160)),
        sa.Column("rsvp_status", sa.String(20), nullable=False),
        sa.Column("rsvp_token", sa.String(64)),
        _ts("created_at", now=True),
        _pk("event_participants"),
        _fk("event_participants", "event_id", "events", ondelete="CASCADE"),
        _fk("event_participants", "client_id", "clients", ondelete="CASCADE"),
        sa.UniqueConstraint("rsvp_token", name="uq_event_participants_rsvp_token"),
    )
    _ix("event_participants", "event_id")

    op.create_table(
        "attendance",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("event_id", sa.Integer(), nullable=False),
        sa.Column("client_id", sa.Integer(), nullable=False),
        _ts("join_time", nullable=False),
        _ts("leave_time"),
        sa.Column("source", sa.String(20), nullable=False),
        _pk("attendance"),
        _fk("attendance", "event_id", "events", ondelete="CASCADE"),
        _fk("attendance", "client_id", "clients", ondelete="CASCADE"),
        sa.UniqueConstraint("event_id", "client_id", name="uq_attendance_event_client"),
    )
    _ix("attendance", "event_id", "client_id")

    op.create_table(
        "task_statuses",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("account_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(80), nullable=False),
        sa.Column("color", sa.String(20), nullable=False),
        sa.Column("icon", sa.String(40)),
        sa.Column("display_order", sa.Integer(), nullable=False),
        sa.Column("is_default", sa.Boolean(), nullable=False),
        sa.Column("is_completed_status", sa.Boolean(), nullable=False),
        _pk("task_statuses"),
        _fk("task_statuses", "account_id", "accounts"),
    )
    _ix("task_statuses", "account_id")

    op.create_table(
        "tasks",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("account_id", sa.Integer(), nullable=False),
        sa.Column("status_id", sa.Integer(), nullable=False),
        sa.Column("client_id", sa.Integer()),
        sa.Column("assigned_to", sa.Integer()),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("priority", sa.String(10), nullable=False),
        sa.Column("due_date", sa.Date()),
        _ts("completed_at"),
        _ts("created_at", now=True),
        _pk("tasks"),
        _fk("tasks", "account_id", "accounts"),
        _fk("tasks", "status_id", "task_statuses"),
        _fk("tasks", "client_id", "clients", ondelete="SET NULL"),
        _fk("tasks", "assigned_to", "users", ondelete="SET NULL"),
    )
    _ix("tasks", "account_id", "status_id")

    op.create_table(
        "reminder_campaigns",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("account_id", sa.Integer(), nullable=False),
        sa.Column("event_id", sa.Integer(), nullable=False),
        sa.Column("created_by", sa.Integer()),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("campaign_type", sa.String(20), nullable=False),
        sa.Column("message_template", sa.Text(), nullable=False),
        sa.Column("email_subject", sa.String(200)),
        sa.Column("send_whatsapp", sa.Boolean(), nullable=False),
        sa.Column("send_email", sa.Boolean(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        _ts("scheduled_at"),
        sa.Column("delay_min_seconds", sa.Integer(), nullable=False),
        sa.Column("delay_max_seconds", sa.Integer(), nullable=False),
        sa.Column("total_recipients", sa.Integer(), nullable=False),
        sa.Column("sent_count", sa.Integer(), nullable=False),
        sa.Column("failed_count", sa.Integer(), nullable=False),
        sa.Column("responded_count", sa.Integer(), nullable=False),
        _ts("started_at"),
        _ts("completed_at"),
        _ts("created_at", now=True),
        _pk("reminder_campaigns"),
        _fk("reminder_campaigns", "account_id", "accounts"),
        _fk("reminder_campaigns", "event_id", "events", ondelete="CASCADE"),
        _fk("reminder_campaigns", "created_by", "users", ondelete="SET NULL"),
    )
    _ix("reminder_campaigns", "account_id", "event_id", "status")

    op.create_table(
        "reminder_recipients",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("campaign_id", sa.Integer(), nullable=False),
        sa.Column("participant_id", sa.Integer()),
        sa.Column("client_id", sa.Integer()),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("phone", sa.String(20)),
        sa.Column("email", sa.String(160)),
        sa.Column("send_order", sa.Integer(), nullable=False),
        sa.Column("whatsapp_status", sa.String(20), nullable=False),
        _ts("whatsapp_sent_at"),
        sa.Column("whatsapp_error", sa.Text()),
        sa.Column("email_status", sa.String(20), nullable=False),
        _ts("email_sent_at"),
        sa.Column("email_error", sa.Text()),
        _ts("responded_at"),
        sa.Column("response_data", sa.JSON()),
        _pk("reminder_recipients"),
        _fk("reminder_recipients", "campaign_id", "reminder_campaigns", ondelete="CASCADE"),
        _fk("reminder_recipients", "participant_id", "event_participants", ondelete="SET NULL"),
        _fk("reminder_recipients", "client_id", "clients", ondelete="SET NULL"),
    )
    _ix("reminder_recipients", "campaign_id")

    op.create_table(
        "whatsapp_groups",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("account_id", sa.Integer(), nullable=False),
        sa.Column("group_jid", sa.String(80), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("owner_phone", sa.String(20)),
        sa.Column("participant_count", sa.Integer(), nullable=False),
        sa.Column("ai_analysis_enabled", sa.Boolean(), nullable=False),
        sa.Column("sentiment", sa.String(20)),
        _ts("last_message_at"),
        _ts("created_at", now=True),
        _pk("whatsapp_groups"),
        _fk("whatsapp_groups", "account_id", "accounts"),
        sa.UniqueConstraint("account_id", "group_jid", name="uq_whatsapp_groups_account_jid"),
    )
    _ix("whatsapp_groups", "account_id")

    op.create_table(
        "integrations",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("account_id", sa.Integer(), nullable=False),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("config", sa.JSON(), nullable=False),
        _ts("last_sync_at"),
        sa.Column("last_error", sa.Text()),
        _ts("created_at", now=True),
        _pk("integrations"),
        _fk("integrations", "account_id", "accounts"),
        sa.UniqueConstraint("account_id", "type", name="uq_integrations_account_type"),
    )
    _ix("integrations", "account_id")

    op.create_table(
        "sync_jobs",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("account_id", sa.Integer(), nullable=False),
        sa.Column("integration_type", sa.String(20), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("total", sa.Integer(), nullable=False),
        sa.Column("success_count", sa.Integer(), nullable=False),
        sa.Column("fail_count", sa.Integer(), nullable=False),
        sa.Column("processed_ids", sa.JSON(), nullable=False),
        sa.Column("errors", sa.JSON(), nullable=False),
        _ts("started_at"),
        _ts("finished_at"),
        _ts("created_at", now=True),
        _pk("sync_jobs"),
        _fk("sync_jobs", "account_id", "accounts"),
    )
    _ix("sync_jobs", "account_id")

    # papéis fixos
    roles = sa.table("roles", sa.column("name", sa.String))
    op.bulk_insert(roles, [{"name": "admin"}, {"name": "manager"}, {"name": "member"}])


def downgrade() -> None:
    for table in (
        "sync_jobs", "integrations", "whatsapp_groups",
        "reminder_recipients", "reminder_campaigns",
        "tasks", "task_statuses",
        "attendance", "event_participants", "event_products", "events",
        "client_field_values", "custom_fields",
        "client_contracts", "client_followups", "clients", "products",
        "idempotency_keys", "refresh_tokens", "user_roles", "users", "roles", "accounts",
    ):
        op.drop_table(table)
