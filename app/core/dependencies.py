from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlmodel import Session

from app.core.exceptions import UnauthorizedError
from app.db.core import get_session
from app.models.auth import Actor
from app.realtime.hub import Hub, hub

from app.services.auth import TokenService
from app.services.chat import ChatService
from app.services.complaint import ComplaintService
from app.services.order import OrderService
from app.services.product import ProductService

bearer_scheme = HTTPBearer(auto_error=False)


def get_token_service() -> TokenService:
    return TokenService()


def get_hub() -> Hub:
    """The process-wide connection hub. Overridden in tests."""
    return hub


def get_order_service(
    session: Session = Depends(get_session),
    hub: Hub = Depends(get_hub)
) -> OrderService:
    return OrderService(session, hub=hub)


def get_chat_service(
    session: Session = Depends(get_session),
    hub: Hub = Depends(get_hub)
) -> ChatService:
    return ChatService(session, hub=hub)


def get_complaint_service(
    session: Session = Depends(get_session),
    hub: Hub = Depends(get_hub)
) -> ComplaintService:
    return ComplaintService(session, hub=hub)


def get_product_service(session: Session = Depends(get_session)) -> ProductService:
    return ProductService(session=session)


def get_current_actor(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    service: TokenService = Depends(get_token_service)
) -> Actor:
    """
    Validates the bearer token and returns the caller it identifies.
    This is the gatekeeper for protected routes.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if credentials is None:
        raise credentials_exception

    actor = service.verify_access_token(credentials.credentials)
    if actor is None:
        raise credentials_exception

    return actor


def require_consumer(actor: Actor = Depends(get_current_actor)) -> Actor:
    if not actor.is_consumer:
        raise UnauthorizedError("Consumer access required")
    return actor


def require_supplier_staff(actor: Actor = Depends(get_current_actor)) -> Actor:
    if not actor.is_supplier_staff:
        raise UnauthorizedError("Supplier staff access required")
    return actor
