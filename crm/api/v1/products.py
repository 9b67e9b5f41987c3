# crm/api/v1/products.py
from typing import List

from fastapi import APIRouter, Depends, status

from crm.api.deps import get_context
from crm.core.context import RequestContext
from crm.core.rbac import ROLE_MANAGER, require_min_role
from crm.crud.product import product_crud
from crm.schemas.event import ProductCreate, ProductOut, ProductUpdate

router = APIRouter()


@router.get("", response_model=List[ProductOut])
def list_products(ctx: RequestContext = Depends(get_context)):
    return product_crud.list_for_account(ctx.db, ctx.account_id, limit=500)


@router.post("", response_model=ProductOut, status_code=status.HTTP_201_CREATED)
def create_product(body: ProductCreate, ctx: RequestContext = Depends(require_min_role(ROLE_MANAGER))):
    return product_crud.create(ctx.db, body, extra={"account_id": ctx.account_id})


@router.get("/{product_id}", response_model=ProductOut)
def get_product(product_id: int, ctx: RequestContext = Depends(get_context)):
    return product_crud.get_for_account(ctx.db, ctx.account_id, product_id)


@router.put("/{product_id}", response_model=ProductOut)
def update_product(product_id: int, body: ProductUpdate, ctx: RequestContext = Depends(require_min_role(ROLE_MANAGER))):
    p = product_crud.get_for_account(ctx.db, ctx.account_id, product_id)
    return product_crud.update(ctx.db, p, body)


@router.delete("/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_product(product_id: int, ctx: RequestContext = Depends(require_min_role(ROLE_MANAGER))):
    p = product_crud.get_for_account(ctx.db, ctx.account_id, product_id)
    product_crud.remove(ctx.db, p)
