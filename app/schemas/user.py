from typing import Optional

from pydantic import BaseModel, Field

from app.schemas.my_base_model import CustomBaseModel


class UpdateUserRequest(BaseModel):
    """Request model for profile update.
    Omitted fields are left unchanged; "" or null clears the field.
    """

    displayName: Optional[str] = Field(None, description="New display name, empty string clears it")
    profilePicture: Optional[str] = Field(
        None, description="Base64 image (data URI allowed), empty string or null clears it"
    )


class UserView(CustomBaseModel):
    """Public view of the signed-in user"""

    id: str
    fid: str
    username: Optional[str] = None
    display_name: Optional[str] = Field(None, serialization_alias="displayName")
    pfp_url: Optional[str] = Field(None, serialization_alias="pfpUrl")


class SessionUserView(UserView):
    """User view returned on sign-in"""

    public_address: Optional[str] = Field(None, serialization_alias="publicAddress")
    people_user_id: Optional[int] = Field(None, serialization_alias="peopleUserId")


class UserResponse(CustomBaseModel):
    """Response model for /user/me and /user/update"""

    user: UserView
