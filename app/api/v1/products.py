from typing import List
from fastapi import APIRouter, Depends, status

from app.core.dependencies import get_product_service, require_supplier_staff
from app.models.auth import Actor
from app.models.product import ProductBulkUpdate, ProductRead
from app.services.product import ProductService

router = APIRouter()


@router.post(
    "/bulk-update",
    response_model=List[ProductRead],
    status_code=status.HTTP_200_OK,
    summary="Bulk Update Products",
    description="Applies the provided fields to every listed product of the caller's supplier. Other products are skipped."
)
def bulk_update_products(
    data: ProductBulkUpdate,
    actor: Actor = Depends(require_supplier_staff),
    service: ProductService = Depends(get_product_service)
):
    products = service.bulk_update(actor.supplier_id, data)
    return [ProductRead.model_validate(product) for product in products]
