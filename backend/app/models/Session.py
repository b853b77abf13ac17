from pydantic import BaseModel, ConfigDict, StrictStr
from pydantic.alias_generators import to_camel

# ==========================================
# Session token payload
# ==========================================
class SessionPayload(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    session_id: str  # Audit correlation only, never looked up
    user_id: str  # Self-asserted display label
    iat: int  # Issued at (epoch seconds)
    exp: int  # Expiration time (epoch seconds)

# ==========================================
# DTOs
# ==========================================

# Properties to receive via API on login
class LoginRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    user_id: StrictStr | None = None
    password: StrictStr | None = None

# Properties to return via API
class SessionUserResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    user_id: str
