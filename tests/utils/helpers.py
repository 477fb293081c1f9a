from typing import List, Tuple

from app.db.schema import User
from app.models.auth import Actor
from app.models.realtime import Envelope
from app.services.auth import TokenService


class RecordingHub:
    """Stands in for the connection hub and keeps every addressed send."""

    def __init__(self):
        self.sent: List[Tuple[str, str, Envelope]] = []

    def send_to_user(self, user_id, message: Envelope) -> None:
        self.sent.append(("user", str(user_id), message))

    def send_to_supplier(self, supplier_id, message: Envelope) -> None:
        self.sent.append(("supplier", str(supplier_id), message))

    def send_to_consumer(self, consumer_id, message: Envelope) -> None:
        self.sent.append(("consumer", str(consumer_id), message))

    def types(self) -> List[str]:
        return [message.type for _, _, message in self.sent]


def actor_for(user: User) -> Actor:
    return Actor(user_id=user.id, role=user.role, supplier_id=user.supplier_id)


def auth_headers(user: User) -> dict:
    token = TokenService().generate_access_token(user)
    return {"Authorization": f"Bearer {token}"}


def assert_error(response, status_code: int, code: str):
    """Asserts a domain failure response."""
    assert response.status_code == status_code, response.text
    assert response.json()["code"] == code
