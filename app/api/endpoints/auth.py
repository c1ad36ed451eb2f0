from enum import Enum
from functools import partial
from typing import List

from fastapi import APIRouter, BackgroundTasks, Depends, Response, status
from sqlalchemy.orm import Session, sessionmaker

from app.core.config import settings
from app.db.session import get_db, get_session_factory
import app.schemas.auth as schemas
from app.schemas.my_base_model import Message
from app.schemas.user import SessionUserView
from app.services.account_provisioner import AccountProvisioner, RegistrationRequest
from app.services.directory_sync import DirectorySyncClient, get_directory_client, run_directory_sync
from app.services.identity_client import IdentityAuthorityClient, get_identity_client
from app.services.local_users import record_people_user_id, to_sync_data
from app.services.session_authenticator import NewAccountData, SessionAuthenticator

router = APIRouter()
group_tags: List[str | Enum] = ["Auth"]


@router.post(
    "/create",
    tags=group_tags,
    response_model=Message,
    status_code=status.HTTP_200_OK,
)
def create_account(
    body: schemas.CreateAccountRequest,
    identity: IdentityAuthorityClient = Depends(get_identity_client),
) -> Message:
    """
    Create a new account with the identity authority.

    Body: { username, name, phone, email? }

    Returns:
    - 200 when the account was created and an OTP was sent to the phone
    - 400 {"errors": {field: message}} for invalid or already-taken fields
    - upstream status {"error": message} for other authority failures
    """
    AccountProvisioner(identity).register(
        RegistrationRequest(
            username=body.username,
            display_name=body.name,
            phone=body.phone,
            email=body.email,
        )
    )
    return Message(success=True, message="Account created. Verification code sent.")


@router.post(
    "/send-otp",
    tags=group_tags,
    response_model=Message,
    status_code=status.HTTP_200_OK,
)
def send_otp(
    body: schemas.SendOtpRequest,
    identity: IdentityAuthorityClient = Depends(get_identity_client),
) -> Message:
    """Send a sign-in OTP to a registered phone number."""
    SessionAuthenticator(identity).request_otp(body.phone)
    return Message(success=True, message="Verification code sent")


@router.post(
    "/verify-otp",
    tags=group_tags,
    response_model=schemas.SignInResponse,
    status_code=status.HTTP_200_OK,
)
def verify_otp(
    body: schemas.VerifyOtpRequest,
    response: Response,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    identity: IdentityAuthorityClient = Depends(get_identity_client),
    directory: DirectorySyncClient = Depends(get_directory_client),
    session_factory: sessionmaker = Depends(get_session_factory),
) -> schemas.SignInResponse:
    """
    Verify an OTP, sign the user in locally and set the session cookie.

    When the user has a wallet address the directory is synced in the
    background after the response is sent; the directory id is stored on the
    local user once the sync succeeds.
    """
    authenticator = SessionAuthenticator(identity)
    authority_user = authenticator.verify_otp(body.phone, body.code)

    account_data = None
    if body.userData is not None:
        account_data = NewAccountData(**body.userData.model_dump())
    user = authenticator.sign_in(db, authority_user, account_data, body.publicAddress)

    sync_data = to_sync_data(user, body.publicAddress)
    if sync_data is not None:
        background_tasks.add_task(
            run_directory_sync,
            directory,
            sync_data,
            on_synced=partial(record_people_user_id, session_factory, user.id),
        )

    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=user.id,
        max_age=settings.SESSION_MAX_AGE_SECONDS,
        path="/",
        httponly=True,
        samesite="lax",
        secure=settings.SESSION_COOKIE_SECURE,
    )
    return schemas.SignInResponse(success=True, user=SessionUserView.from_record(user))


@router.post(
    "/logout",
    tags=group_tags,
    response_model=Message,
    status_code=status.HTTP_200_OK,
)
def logout(response: Response) -> Message:
    """Expire the session cookie. The client clears its embedded wallet itself."""
    response.delete_cookie(key=settings.SESSION_COOKIE_NAME, path="/")
    return Message(success=True, message="Signed out")
