from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from crm.core.errors import NotFoundError
from crm.crud.base import CRUDBase
from crm.models.campaign import ReminderCampaign, ReminderRecipient
from crm.schemas.campaign import CampaignCreate


class CRUDCampaign(CRUDBase[ReminderCampaign, CampaignCreate, CampaignCreate]):
    def history(self, db: Session, account_id: int, event_id: Optional[int] = None,
                status: Optional[str] = None, limit: int = 50) -> List[ReminderCampaign]:
        stmt = select(ReminderCampaign).where(ReminderCampaign.account_id == account_id)
        if event_id is not None:
            stmt = stmt.where(ReminderCampaign.event_id == event_id)
        if status:
            stmt = stmt.where(ReminderCampaign.status == status)
        stmt = stmt.order_by(ReminderCampaign.created_at.desc(), ReminderCampaign.id.desc()).limit(limit)
        return list(db.scalars(stmt).all())

    def recipient(self, db: Session, account_id: int, campaign_id: int, recipient_id: int) -> ReminderRecipient:
        campaign = self.get_for_account(db, account_id, campaign_id)
        row = db.get(ReminderRecipient, recipient_id)
        if row is None or row.campaign_id != campaign.id:
            raise NotFoundError("Destinatário não encontrado.")
        return row


campaign_crud = CRUDCampaign(ReminderCampaign, "Campanha não encontrada.")
