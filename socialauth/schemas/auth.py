from pydantic import BaseModel

class AuthUrlResponse(BaseModel):
    auth_url: str

class IdentityResponse(BaseModel):
    user_id: str
    tenant_id: str
