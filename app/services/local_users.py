"""
Local user records keyed by fid.

The identity authority owns accounts; this table keeps the local view used by
sessions and the directory sync. All writes commit immediately.
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session, sessionmaker

from app.models.users import User
from app.services.directory_sync import SyncUserData, SyncUserResult

logger = logging.getLogger(__name__)


def get_or_create_user_by_fid(
    db: Session,
    fid: str,
    renaissance_user_id: Optional[str] = None,
    username: Optional[str] = None,
    display_name: Optional[str] = None,
    pfp_url: Optional[str] = None,
    public_address: Optional[str] = None,
) -> User:
    user = db.query(User).filter(User.fid == fid).first()
    if user is not None:
        return user

    user = User(
        fid=fid,
        renaissance_user_id=renaissance_user_id,
        username=username,
        display_name=display_name,
        pfp_url=pfp_url,
        public_address=public_address,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("created local user %s for fid %s", user.id, fid)
    return user


def set_public_address(db: Session, user: User, public_address: str) -> User:
    user.public_address = public_address
    db.commit()
    db.refresh(user)
    return user


def to_sync_data(user: User, public_address: Optional[str] = None) -> Optional[SyncUserData]:
    """
    Directory payload for a user, None when there is no wallet address.

    public_address is the address the device signed in with; it wins over the
    one stored on the user.
    """
    address = public_address or user.public_address
    if not address:
        return None
    return SyncUserData(
        public_address=address,
        username=user.username or None,
        name=user.display_name or None,
        profile_picture=user.pfp_url or None,
        farcaster_id=user.fid,
    )


def record_people_user_id(session_factory: sessionmaker, user_id: str, result: SyncUserResult) -> None:
    """Store the directory id on the local user. Runs after the response is sent."""
    people_user_id = result.people_user_id
    if people_user_id is None:
        return
    db = session_factory()
    try:
        user = db.get(User, user_id)
        if user is None:
            return
        user.people_user_id = people_user_id
        db.commit()
        logger.info("user %s synced with directory as %s (created=%s)", user_id, people_user_id, result.created)
    finally:
        db.close()
