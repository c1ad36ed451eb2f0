from typing import Optional

from pydantic import BaseModel, Field

from app.schemas.my_base_model import CustomBaseModel
from app.schemas.user import SessionUserView


class CreateAccountRequest(BaseModel):
    """Request model for account creation - validated by the service, not here"""

    username: Optional[str] = Field(None, description="Desired username, letters/numbers/underscores")
    name: Optional[str] = Field(None, description="Display name")
    phone: Optional[str] = Field(None, description="10-digit phone number")
    email: Optional[str] = Field(None, description="Optional email address")


class SendOtpRequest(BaseModel):
    """Request model for OTP dispatch"""

    phone: Optional[str] = Field(None, description="10-digit phone number")


class NewAccountFields(BaseModel):
    username: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None


class VerifyOtpRequest(BaseModel):
    """Request model for OTP verification"""

    phone: Optional[str] = Field(None, description="10-digit phone number")
    code: Optional[str] = Field(None, description="6-digit verification code")
    isNewAccount: bool = Field(False, description="True right after /create")
    userData: Optional[NewAccountFields] = Field(None, description="Form data from /create")
    publicAddress: Optional[str] = Field(None, description="Embedded wallet address of this device")


class SignInResponse(CustomBaseModel):
    """Response model for a verified sign-in"""

    success: bool = True
    user: SessionUserView
