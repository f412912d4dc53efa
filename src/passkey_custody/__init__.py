from .client import ApiKeyStamper, CustodyClient
from .config import Settings
from .registration import RegistrationOrchestrator, RegistrationState
from .runtime import run
from .security import ChallengeToken, verify_signature
from .signing import SigningProxy
from .types import Registration, SigningRequest, SigningResult

__all__ = [
    "ApiKeyStamper",
    "ChallengeToken",
    "CustodyClient",
    "Registration",
    "RegistrationOrchestrator",
    "RegistrationState",
    "Settings",
    "SigningProxy",
    "SigningRequest",
    "SigningResult",
    "run",
    "verify_signature",
]
