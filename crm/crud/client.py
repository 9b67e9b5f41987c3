from crm.crud.base import CRUDBase
from crm.models.client import Client, ClientFollowup
from crm.schemas.client import ClientCreate, ClientUpdate, FollowupCreate, FollowupUpdate

client_crud = CRUDBase[Client, ClientCreate, ClientUpdate](Client, "Cliente não encontrado")
followup_crud = CRUDBase[ClientFollowup, FollowupCreate, FollowupUpdate](ClientFollowup, "Acompanhamento não encontrado")
