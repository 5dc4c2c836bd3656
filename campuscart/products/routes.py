"""
campuscart/products/routes.py

Product Routes
Defines API routes for marketplace listings:
- Public product listing
- Create and delete listings (authenticated sellers)
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from campuscart.core.dependencies import CurrentUserIdDep
from campuscart.core.limiter import limiter
from campuscart.core.schemas import MessageResponse
from campuscart.database.session import get_db
from campuscart.products import schemas
from campuscart.products.services import ProductCatalog

router = APIRouter(prefix="/api/products", tags=["Products"])

DBDep = Annotated[AsyncSession, Depends(get_db)]


@router.get(
    "",
    response_model=list[schemas.ProductRead],
    status_code=status.HTTP_200_OK,
    summary="List Products",
    description="List all product listings, newest first.",
)
@limiter.limit("30/minute")
async def list_products(
    request: Request,
    db: DBDep,
) -> list[schemas.ProductRead]:
    return await ProductCatalog(db).list_products()


@router.post(
    "",
    response_model=schemas.ProductCreateResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create Product",
    description="Create a new product listing owned by the authenticated user.",
)
@limiter.limit("10/minute")
async def create_product(
    request: Request,
    data: schemas.ProductCreate,
    db: DBDep,
    current_user_id: CurrentUserIdDep,
) -> schemas.ProductCreateResponse:
    product = await ProductCatalog(db).create_product(current_user_id, data)
    return schemas.ProductCreateResponse(message="Product created successfully!", product=product)


@router.delete(
    "/{product_id}",
    response_model=MessageResponse,
    status_code=status.HTTP_200_OK,
    summary="Delete Product",
    description="Delete a product listing (seller only).",
)
@limiter.limit("5/minute")
async def delete_product(
    request: Request,
    product_id: UUID,
    db: DBDep,
    current_user_id: CurrentUserIdDep,
) -> MessageResponse:
    return await ProductCatalog(db).delete_product(current_user_id, product_id)
