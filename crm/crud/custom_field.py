from crm.crud.base import CRUDBase
from crm.models.custom_field import CustomField
from crm.schemas.custom_field import CustomFieldCreate, CustomFieldUpdate

field_crud = CRUDBase[CustomField, CustomFieldCreate, CustomFieldUpdate](CustomField, "Campo não encontrado")
