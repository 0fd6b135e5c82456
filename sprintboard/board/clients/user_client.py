# ============================================
# board/clients/user_client.py
# ============================================
import logging
from typing import Dict, List

import requests
from django.conf import settings
from django.core.cache import cache

logger = logging.getLogger(__name__)


class UserServiceClient:
    """Looks up display data for actor ids in the external user directory.

    Only used to decorate responses: a failing directory yields missing
    names, never a failed request.
    """

    CACHE_TTL = 300  # 5 minutes
    TIMEOUT = 5

    @classmethod
    def base_url(cls) -> str:
        return (getattr(settings, 'USER_SERVICE_URL', '') or '').rstrip('/')

    @staticmethod
    def _cache_key(user_id: str) -> str:
        return f"board:user:{user_id}"

    @classmethod
    def get_users_by_ids(cls, user_ids: List[str]) -> Dict[str, Dict]:
        """
        Batch get users by IDs
        Returns dict: {user_id: user_data}
        """
        if not user_ids or not cls.base_url():
            return {}

        users_dict = {}
        ids_to_fetch = []

        for user_id in set(str(u) for u in user_ids):
            cached = cache.get(cls._cache_key(user_id))
            if cached:
                users_dict[user_id] = cached
            else:
                ids_to_fetch.append(user_id)

        if ids_to_fetch:
            try:
                response = requests.post(
                    f"{cls.base_url()}/users/batch",
                    json={'ids': sorted(ids_to_fetch)},
                    timeout=cls.TIMEOUT
                )
                response.raise_for_status()
                fetched_users = response.json()
            except requests.RequestException as e:
                logger.warning("[board] batch user lookup failed (%d ids): %s", len(ids_to_fetch), e)
                return users_dict

            for user in fetched_users:
                user_id = str(user['id'])
                users_dict[user_id] = user
                cache.set(cls._cache_key(user_id), user, cls.CACHE_TTL)

        return users_dict
