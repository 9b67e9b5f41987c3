from crm.crud.base import CRUDBase
from crm.models.contract import Contract
from crm.schemas.contract import ContractCreate, ContractUpdate

contract_crud = CRUDBase[Contract, ContractCreate, ContractUpdate](Contract, "Contrato não encontrado.")
