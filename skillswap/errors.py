class SkillSwapError(Exception):
    """Base exception for SkillSwap domain errors."""

    pass


class RemoteUnavailable(SkillSwapError):
    """Raised when the record source cannot be reached. Retryable."""

    pass


class NotFound(SkillSwapError):
    """Raised when an id or identity has no record. A normal outcome."""

    pass


class DecodeFailure(SkillSwapError):
    """Raised when a fingerprint cannot be decoded back to text."""

    pass


class CachePersistenceFailure(SkillSwapError):
    """Raised internally when the annotation cache cannot be persisted."""

    pass


class InvariantViolation(SkillSwapError):
    """Raised internally when a record breaks a ledger invariant."""

    pass


class ValidationError(SkillSwapError):
    """Raised when caller input is malformed."""

    pass
