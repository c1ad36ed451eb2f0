from enum import Enum
from functools import partial
from typing import List

from fastapi import APIRouter, BackgroundTasks, Depends, status
from sqlalchemy.orm import Session, sessionmaker

from app.core.session import get_current_user
from app.db.session import get_db, get_session_factory
from app.models.users import User
from app.schemas.user import UpdateUserRequest, UserResponse, UserView
from app.services.blob_storage import SpacesBlobStore, get_blob_store
from app.services.directory_sync import DirectorySyncClient, get_directory_client, run_directory_sync
from app.services.local_users import record_people_user_id, to_sync_data
from app.services.profile import UNSET, ProfileMutator

router = APIRouter()
group_tags: List[str | Enum] = ["user"]


@router.get(
    "/me",
    tags=group_tags,
    response_model=UserResponse,
    status_code=status.HTTP_200_OK,
)
def get_me(user: User = Depends(get_current_user)) -> UserResponse:
    """Return the user bound to the session cookie."""
    return UserResponse(user=UserView.from_record(user))


@router.api_route(
    "/update",
    methods=["PUT", "PATCH"],
    tags=group_tags,
    response_model=UserResponse,
    status_code=status.HTTP_200_OK,
)
def update_user(
    body: UpdateUserRequest,
    background_tasks: BackgroundTasks,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    blob_store: SpacesBlobStore = Depends(get_blob_store),
    directory: DirectorySyncClient = Depends(get_directory_client),
    session_factory: sessionmaker = Depends(get_session_factory),
) -> UserResponse:
    """
    Update display name and/or profile picture.

    Body fields:
    - displayName: omitted = unchanged, "" = clear, otherwise replace
    - profilePicture: omitted = unchanged, "" or null = clear, otherwise a
      base64 image that is uploaded to blob storage

    A failed upload returns 400 and nothing is changed.
    """
    sent = body.model_fields_set
    updated = ProfileMutator(db, blob_store).update(
        user.id,
        display_name=body.displayName if "displayName" in sent else UNSET,
        avatar=body.profilePicture if "profilePicture" in sent else UNSET,
    )

    sync_data = to_sync_data(updated)
    if sync_data is not None and sent:
        background_tasks.add_task(
            run_directory_sync,
            directory,
            sync_data,
            on_synced=partial(record_people_user_id, session_factory, updated.id),
        )

    return UserResponse(user=UserView.from_record(updated))
