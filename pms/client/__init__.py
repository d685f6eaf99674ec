from pms.client.api import PMSClient, AuthorizationDenied, realtime_url
from pms.client.invalidation import CATEGORY_QUERY_KEYS, INITIAL_SYNC_KEYS

__all__ = [
    "PMSClient",
    "AuthorizationDenied",
    "realtime_url",
    "CATEGORY_QUERY_KEYS",
    "INITIAL_SYNC_KEYS",
]
