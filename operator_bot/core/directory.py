"""
User directory: trading preferences, admins and active members
"""
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import yaml

from ..models import UserPreference

logger = logging.getLogger(__name__)


class UserDirectory(ABC):
    """Read-only view of the users a signal can be delivered to"""

    @abstractmethod
    def fetch_preferences(self) -> List[UserPreference]:
        pass

    @abstractmethod
    def fetch_admin_user_ids(self) -> List[str]:
        pass

    @abstractmethod
    def fetch_active_member_ids(self) -> List[str]:
        pass


def preferences_from_records(records: Iterable[Dict[str, Any]]) -> List[UserPreference]:
    """Tolerant parsing; rows without a user id are ignored"""
    preferences = []
    for record in records or []:
        if not isinstance(record, dict) or not record.get('user_id'):
            logger.warning(f"Ignoring preference record without user_id: {record!r}")
            continue
        preferences.append(UserPreference.from_record(record))
    return preferences


class InMemoryUserDirectory(UserDirectory):

    def __init__(self, preferences: Optional[List[UserPreference]] = None,
                 admin_user_ids: Optional[List[str]] = None,
                 active_member_ids: Optional[List[str]] = None):
        self.preferences = list(preferences or [])
        self.admin_user_ids = list(admin_user_ids or [])
        self.active_member_ids = list(active_member_ids or [])

    def fetch_preferences(self) -> List[UserPreference]:
        return list(self.preferences)

    def fetch_admin_user_ids(self) -> List[str]:
        return list(self.admin_user_ids)

    def fetch_active_member_ids(self) -> List[str]:
        return list(self.active_member_ids)


class YamlUserDirectory(UserDirectory):
    """
    Directory loaded from a YAML file with the layout::

        users:
          - user_id: ...
            trading_style: swing
            preferred_pairs: [EURUSD]
            preferred_timeframes: [H4]
        admins: [<user id>]
        active_members: [<user id>]
    """

    def __init__(self, path: str = "config/users.yaml"):
        self.path = Path(path)

    def _load(self) -> Dict[str, Any]:
        if not self.path.exists():
            logger.warning(f"User directory not found at {self.path}")
            return {}
        with open(self.path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
        return data if isinstance(data, dict) else {}

    def fetch_preferences(self) -> List[UserPreference]:
        return preferences_from_records(self._load().get('users'))

    def fetch_admin_user_ids(self) -> List[str]:
        return [str(user_id) for user_id in self._load().get('admins') or []]

    def fetch_active_member_ids(self) -> List[str]:
        return [str(user_id) for user_id in self._load().get('active_members') or []]
