"""Exception hierarchy for challenge, registration and signing failures."""

from __future__ import annotations

RETRY_MESSAGE = "operation did not complete; please retry from the start"


class PasskeyCustodyError(Exception):
    """Base class for every failure raised by this package."""


# Challenge layer


class ChallengeError(PasskeyCustodyError):
    pass


class ForgedOrCorruptError(ChallengeError):
    """Token failed authentication. Deliberately carries no detail."""

    def __init__(self) -> None:
        super().__init__("challenge invalid")


class WrongStageError(ChallengeError):
    def __init__(self, expected: str, actual: str) -> None:
        super().__init__(f"challenge type invalid: expected {expected!r}")
        self.expected = expected
        self.actual = actual


class ChallengeExpiredError(ChallengeError):
    def __init__(self, issued_at_ms: int, timeout_ms: int) -> None:
        super().__init__("challenge timeout")
        self.issued_at_ms = issued_at_ms
        self.timeout_ms = timeout_ms


# Registration layer


class RegistrationError(PasskeyCustodyError):
    def __init__(self, message: str, state: str | None = None) -> None:
        super().__init__(message)
        self.state = state


class RegistrationRejectedError(RegistrationError):
    pass


class QuorumHandoffFailedError(RegistrationError):
    def __init__(self, message: str, sub_organization_id: str, state: str | None = None) -> None:
        super().__init__(message, state)
        self.sub_organization_id = sub_organization_id


# Custody activity layer


class ActivityError(PasskeyCustodyError):
    """Failure tied to a single custody activity."""

    def __init__(
        self,
        message: str,
        activity_id: str | None = None,
        status: str | None = None,
        activity_type: str | None = None,
    ) -> None:
        super().__init__(message)
        self.activity_id = activity_id
        self.status = status
        self.activity_type = activity_type


class MissingResultError(ActivityError):
    pass


class OperationRejectedError(ActivityError):
    pass


class PollTimeoutError(ActivityError):
    pass


class PollCancelledError(ActivityError):
    pass


class CustodyRequestError(PasskeyCustodyError):
    """Transport or HTTP-level failure talking to the custody service."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


# Post-signing


class VerificationFailedError(PasskeyCustodyError):
    pass
