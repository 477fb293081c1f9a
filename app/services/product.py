from uuid import UUID
from typing import List

from loguru import logger
from sqlmodel import Session

from app.core.exceptions import InvalidDiscount, ValidationFailure
from app.db.gateway import PersistenceGateway
from app.db.schema import Product, utc_now
from app.models.product import ProductBulkUpdate

NULLABLE_FIELDS = {"discount"}


class ProductService:
    def __init__(self, session: Session):
        self.session = session
        self.gateway = PersistenceGateway(session)

    def bulk_update(self, supplier_id: UUID, data: ProductBulkUpdate) -> List[Product]:
        """
        Applies the same patch to several products of one supplier.
        Only fields present in the request are written; ids of other
        suppliers' products are skipped.
        """
        update_data = data.patch.model_dump(exclude_unset=True)
        if not update_data:
            raise ValidationFailure("No fields to update")

        for key, value in update_data.items():
            if value is None and key not in NULLABLE_FIELDS:
                raise ValidationFailure(f"{key} cannot be empty")

        discount = update_data.get("discount")
        if discount is not None and not (0 <= discount <= 100):
            raise InvalidDiscount("Discount must be between 0 and 100")

        products = self.gateway.get_products_for_supplier(
            supplier_id, data.product_ids)

        skipped = len(set(data.product_ids)) - len(products)
        if skipped:
            logger.warning(
                f"Bulk update for supplier {supplier_id} skipped {skipped} foreign or unknown products")

        with self.gateway.transaction():
            for product in products:
                for key, value in update_data.items():
                    setattr(product, key, value)
                product.updated_at = utc_now()
                self.session.add(product)

        for product in products:
            self.session.refresh(product)

        logger.info(
            f"Bulk updated {len(products)} products of supplier {supplier_id}: {sorted(update_data)}")
        return products
