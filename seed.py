from decimal import Decimal
from loguru import logger
from sqlmodel import Session, select
from app.db.core import engine, init_db
from app.db.schema import Supplier, User, UserRole, Product
from app.services.auth import TokenService


# 1. Demo supplier and its staff, one per supplier-side role
DEMO_SUPPLIER = "Fresh Farms Ltd."

DEMO_STAFF = [
    {"email": "owner@freshfarms.test", "first_name": "Olivia",
        "last_name": "Owner", "role": UserRole.OWNER},
    {"email": "manager@freshfarms.test", "first_name": "Marco",
        "last_name": "Manager", "role": UserRole.MANAGER},
    {"email": "sales@freshfarms.test", "first_name": "Sam",
        "last_name": "Seller", "role": UserRole.SALES_REP},
]

# 2. Demo buyer
DEMO_CONSUMER = {
    "email": "buyer@cornercafe.test",
    "company_name": "Corner Cafe",
    "role": UserRole.CONSUMER,
}

# 3. Catalog
DEMO_PRODUCTS = [
    {"name": "Tomatoes", "unit": "kg", "price": Decimal("100.00"),
        "discount": Decimal("10"), "stock_level": 20, "min_order_quantity": 1},
    {"name": "Potatoes", "unit": "kg", "price": Decimal("40.00"),
        "discount": None, "stock_level": 500, "min_order_quantity": 10},
    {"name": "Olive Oil", "unit": "bottle", "price": Decimal("12.50"),
        "discount": Decimal("5"), "stock_level": 60, "min_order_quantity": 6},
]


def seed_supplier(session: Session) -> Supplier:
    """Creates the demo supplier if it doesn't exist."""
    logger.info("--- Seeding Supplier ---")
    supplier = session.exec(
        select(Supplier).where(Supplier.name == DEMO_SUPPLIER)).first()
    if not supplier:
        supplier = Supplier(name=DEMO_SUPPLIER)
        session.add(supplier)
        session.flush()
        logger.info(f"Created Supplier: {supplier.name}")
    else:
        logger.info(f"Existing Supplier: {supplier.name}")
    return supplier


def seed_user(session: Session, data: dict, supplier: Supplier = None) -> User:
    user = session.exec(select(User).where(User.email == data["email"])).first()
    if not user:
        user = User(**data, supplier_id=supplier.id if supplier else None)
        session.add(user)
        session.flush()
        logger.info(f"Created User: {user.email} ({user.role.value})")
    else:
        logger.info(f"Existing User: {user.email}")
    return user


def seed_products(session: Session, supplier: Supplier):
    logger.info("--- Seeding Products ---")

    for product_data in DEMO_PRODUCTS:
        product = session.exec(select(Product).where(
            Product.supplier_id == supplier.id,
            Product.name == product_data["name"])).first()
        if not product:
            session.add(Product(**product_data, supplier_id=supplier.id))
            logger.info(f"Created Product: {product_data['name']}")
        else:
            # Existing stock is live data; seeding never overwrites it
            logger.info(f"Existing Product: {product.name}")


def main():
    init_db()
    tokens = TokenService()

    with Session(engine) as session:
        try:
            # 1. Supplier
            supplier = seed_supplier(session)

            # 2. Users
            logger.info("--- Seeding Users ---")
            users = [seed_user(session, data, supplier) for data in DEMO_STAFF]
            users.append(seed_user(session, DEMO_CONSUMER))

            # 3. Catalog
            seed_products(session, supplier)

            session.commit()
            logger.info("Database seeding completed successfully.")

            # Development tokens; there is no sign-in flow in this service
            for user in users:
                logger.info(
                    f"Access token for {user.email}: {tokens.generate_access_token(user)}")

        except Exception as e:
            session.rollback()
            logger.error(f"Seeding failed: {e}")
            raise e


if __name__ == "__main__":
    main()
