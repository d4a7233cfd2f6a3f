"""
Domain errors raised by the tier ledger and the sale registry.

Every error aborts the call that raised it; the surrounding transaction is
rolled back so no ledger mutation survives. Nothing is retried internally.
Errors flagged ``retryable`` are time-gated: the same call may succeed later.

The API layer renders any ``LaunchpadError`` as
``{"error": kind, "detail": message, "retryable": bool}`` with the class
``status_code``.
"""

from fastapi import status


class LaunchpadError(Exception):
    """Base class of all domain errors."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    retryable: bool = False
    default_message: str = "Request rejected"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    @property
    def kind(self) -> str:
        return type(self).__name__


# ── Tier ledger ────────────────────────────────────────────────


class UnsupportedDenom(LaunchpadError):
    """Raised when attached funds are not in the configured currency."""
    default_message = "Unsupported denomination"


class ContractStopped(LaunchpadError):
    """Raised when the contract status is stopped."""
    status_code = status.HTTP_409_CONFLICT
    default_message = "Contract is stopped"


class BelowMinimum(LaunchpadError):
    """Raised when a cumulative deposit does not reach the lowest tier."""
    default_message = "Deposit is below the lowest tier threshold"


class ReachedMaxTier(LaunchpadError):
    """Raised when a tier 1 participant tries to deposit more."""
    status_code = status.HTTP_409_CONFLICT
    default_message = "Reached max tier"


class LockPeriodNotElapsed(LaunchpadError):
    """Raised when a withdrawal is requested before the lock period ends."""
    status_code = status.HTTP_425_TOO_EARLY
    retryable = True
    default_message = "Lock period has not elapsed yet"


class NothingToClaim(LaunchpadError):
    """Raised when no withdrawal (or reward) is claimable yet."""
    status_code = status.HTTP_409_CONFLICT
    default_message = "Nothing to claim"


class StakeNotFound(LaunchpadError):
    """Raised when a participant without stake asks to withdraw."""
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "No stake found"


class DelegationNotFound(LaunchpadError):
    """Raised when the staking module reports no delegation to move."""
    status_code = status.HTTP_409_CONFLICT
    default_message = "Delegation not found"


# ── Access control ─────────────────────────────────────────────


class Unauthorized(LaunchpadError):
    """Raised when the caller lacks admin or owner rights."""
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Unauthorized"


# ── Eligibility ────────────────────────────────────────────────


class InvalidNftTier(LaunchpadError):
    """Raised when an NFT proof does not establish a tier for the caller."""
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "NFT does not grant a tier to the caller"


class NotWhitelisted(LaunchpadError):
    """Raised when the caller is not eligible for the sale."""
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "You are not in a whitelist"


# ── Sales and purchases ────────────────────────────────────────


class SaleNotActive(LaunchpadError):
    """Raised outside the [start_time, end_time) window of a sale."""
    status_code = status.HTTP_425_TOO_EARLY
    retryable = True
    default_message = "Sale is not active"


class SaleNotFinished(LaunchpadError):
    """Raised when the owner settles a sale before its end time."""
    status_code = status.HTTP_425_TOO_EARLY
    retryable = True
    default_message = "Sale is not finished yet"


class ExceedsTierCap(LaunchpadError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "You cannot buy more tokens with current tier"


class TierSoldOut(LaunchpadError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "All tokens are sold for your tier"


class InsufficientAllocation(LaunchpadError):
    """Raised when a purchase is larger than what is left for the tier."""
    status_code = status.HTTP_409_CONFLICT
    default_message = "Not enough tokens left for your tier"


class ZeroTokens(LaunchpadError):
    default_message = "Payment is too small to buy a single token"


class AlreadyWithdrawn(LaunchpadError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Already withdrawn"


class NothingToReceive(LaunchpadError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Nothing to receive"


# ── Configuration and lookup ───────────────────────────────────


class InvalidConfig(LaunchpadError):
    """Raised for malformed ladders, thresholds, windows or amounts."""
    default_message = "Invalid configuration"


class AlreadyInitialized(LaunchpadError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Contract is already initialized"


class NotFound(LaunchpadError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class UnresolvableAsset(LaunchpadError):
    """Raised when a token contract has no registered collaborator."""
    default_message = "Asset cannot be resolved"


class UnsupportedOperation(LaunchpadError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Operation is not supported"


class ProvisioningConflict(LaunchpadError):
    """Raised when a label is provisioned again with different content."""
    status_code = status.HTTP_409_CONFLICT
    default_message = "Label is already provisioned with different content"


# ── Collaborators ──────────────────────────────────────────────


class CollaboratorError(LaunchpadError):
    """Raised when an external contract call fails or returns garbage."""
    status_code = status.HTTP_502_BAD_GATEWAY
    default_message = "External contract call failed"


class CollaboratorRejected(CollaboratorError):
    """Raised when the gateway refuses a call with a 4xx status."""
    default_message = "External contract rejected the call"

    def __init__(self, message: str | None = None, upstream_status: int | None = None):
        super().__init__(message)
        self.upstream_status = upstream_status


class CollaboratorNotConfigured(CollaboratorError):
    """Raised when no client is registered for a collaborator."""
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_message = "External contract is not configured"
