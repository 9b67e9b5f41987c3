from crm.crud.base import CRUDBase
from crm.models.product import Product
from crm.schemas.event import ProductCreate, ProductUpdate

product_crud = CRUDBase[Product, ProductCreate, ProductUpdate](Product, "Produto não encontrado")
