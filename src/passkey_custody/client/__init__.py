from .custody import CustodyClient
from .http import CustodyHttpClient
from .polling import poll_activity
from .stamp import ApiKeyStamper, Stamper, generate_api_key_pair

__all__ = [
    "ApiKeyStamper",
    "CustodyClient",
    "CustodyHttpClient",
    "Stamper",
    "generate_api_key_pair",
    "poll_activity",
]
