from typing import Optional

from pydantic import BaseModel


class UserIdentity(BaseModel):
    uid: str
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None


class SessionContext(BaseModel):
    """Identity of the caller, passed explicitly to services that need it."""
    device_id: str
    user: Optional[UserIdentity] = None

    @property
    def is_signed_in(self) -> bool:
        return self.user is not None


class LoginRequest(BaseModel):
    id_token: str


class AuthStateResponse(BaseModel):
    user: Optional[UserIdentity] = None
    is_configured: bool
    config_notice: Optional[str] = None
