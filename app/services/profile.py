"""
Profile updates for the signed-in user.

Each field has three states:
- omitted (UNSET): leave the stored value alone
- empty / null: clear the stored value
- non-empty: replace it (avatars are uploaded to the blob store first)

All uploads run before anything is written. If an upload fails the whole
update is dropped, so a display name sent together with a bad avatar is not
applied either.
"""

import logging
from typing import Any, Dict, Optional, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import UnauthenticatedError
from app.models.users import User
from app.services.blob_storage import SpacesBlobStore

logger = logging.getLogger(__name__)


class _Unset:
    def __repr__(self) -> str:
        return "UNSET"


UNSET: Any = _Unset()

FieldValue = Union[Optional[str], _Unset]


class ProfileMutator:
    def __init__(self, db: Session, blob_store: SpacesBlobStore):
        self.db = db
        self.blob_store = blob_store

    def build_mutation(
        self, user_id: str, display_name: FieldValue = UNSET, avatar: FieldValue = UNSET
    ) -> Dict[str, Optional[str]]:
        """Resolve the requested changes into column values. Uploads happen here."""
        mutation: Dict[str, Optional[str]] = {}

        if display_name is not UNSET:
            mutation["display_name"] = display_name or None

        if avatar is not UNSET:
            if not avatar:
                mutation["pfp_url"] = None
            else:
                mutation["pfp_url"] = self.blob_store.upload_profile_image(avatar, user_id)

        return mutation

    def update(
        self, user_id: str, display_name: FieldValue = UNSET, avatar: FieldValue = UNSET
    ) -> User:
        user = self.db.get(User, user_id)
        if user is None:
            raise UnauthenticatedError()

        mutation = self.build_mutation(user_id, display_name=display_name, avatar=avatar)
        if not mutation:
            return user

        for column, value in mutation.items():
            setattr(user, column, value)
        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("failed to update profile for user %s", user_id)
            raise
        self.db.refresh(user)

        logger.info("updated profile for user %s: %s", user_id, ", ".join(sorted(mutation)))
        return user
