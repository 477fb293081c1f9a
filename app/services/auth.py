from typing import Optional
import uuid
from datetime import datetime, timedelta, timezone

import jwt
from pydantic import ValidationError

from app.core.config import settings
from app.db.schema import User, UserRole
from app.models.auth import Actor


class TokenService:
    """
    Issues and verifies access tokens. Identity comes entirely from the
    claims; the core never looks the caller up in the database to authorize.
    """
    ALGORITHM = "HS256"

    def _create_jwt(self, claims: dict, expires_delta: timedelta, type: str) -> str:
        """Helper to sign JWTs with specific types."""
        to_encode = {
            **claims,
            "exp": datetime.now(timezone.utc) + expires_delta,
            "type": type
        }
        return jwt.encode(to_encode, settings.secret_key, algorithm=self.ALGORITHM)

    def create_access_token(
        self,
        user_id: uuid.UUID,
        role: UserRole,
        supplier_id: Optional[uuid.UUID] = None,
        expires_delta: Optional[timedelta] = None
    ) -> str:
        claims = {"sub": str(user_id), "role": role.value}
        if supplier_id:
            claims["supplier_id"] = str(supplier_id)

        return self._create_jwt(
            claims,
            expires_delta=expires_delta or timedelta(
                minutes=settings.access_token_expire_minutes),
            type="access"
        )

    def generate_access_token(self, user: User) -> str:
        return self.create_access_token(user.id, user.role, user.supplier_id)

    def verify_access_token(self, token: str) -> Optional[Actor]:
        try:
            payload = jwt.decode(token, settings.secret_key,
                                 algorithms=[self.ALGORITHM])
            user_id = payload.get("sub")
            token_type = payload.get("type")

            if not user_id or token_type != "access":
                return None

            return Actor(
                user_id=uuid.UUID(user_id),
                role=UserRole(payload.get("role")),
                supplier_id=payload.get("supplier_id")
            )
        except (jwt.PyJWTError, ValidationError, ValueError):
            return None
