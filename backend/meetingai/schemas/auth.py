from typing import Optional
from uuid import UUID

from pydantic import BaseModel


class TokenData(BaseModel):
    """Verified claims of a bearer token."""

    user_id: UUID
    email: Optional[str] = None
