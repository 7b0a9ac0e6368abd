"""
User Service - resolve who is calling and what role they hold.

Identity verification happens upstream. This service only looks up the
role tag stored on the user document (field "type": admin | client) and
maps anything else to "unset".
"""

import asyncio
import logging
from typing import Callable, Dict, Optional

from app.core.settings import settings
from app.models.user import Principal, UserRole

logger = logging.getLogger(__name__)


def role_from_document(user_data: Optional[Dict]) -> UserRole:
    if not user_data:
        return UserRole.UNSET
    try:
        return UserRole(str(user_data.get("type") or "").strip().lower())
    except ValueError:
        return UserRole.UNSET


class UserService:
    """
    Looks up user documents through a fetch function.

    fetch_user(uid) returns the user document dict or None. Defaults to
    the Firestore users collection.
    """

    def __init__(self, fetch_user: Optional[Callable[[str], Optional[Dict]]] = None):
        self._fetch_user = fetch_user or self._fetch_from_firestore

    @classmethod
    def from_mapping(cls, users: Dict[str, Dict]) -> "UserService":
        return cls(fetch_user=lambda uid: users.get(uid))

    def _fetch_from_firestore(self, uid: str) -> Optional[Dict]:
        from app.config.firebase import get_db

        doc = get_db().collection(settings.USERS_COLLECTION).document(uid).get()
        if not doc.exists:
            return None
        return doc.to_dict()

    async def get_principal(self, uid: str) -> Principal:
        """
        Build the principal for a uid.
        Lookup failures degrade to role "unset" rather than raising.
        """
        try:
            loop = asyncio.get_event_loop()
            user_data = await loop.run_in_executor(None, self._fetch_user, uid)
        except Exception as e:
            logger.error(f"Failed to get user {uid}: {str(e)}")
            user_data = None
        return Principal(uid=uid, role=role_from_document(user_data))
