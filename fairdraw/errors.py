"""Exception hierarchy for the draw subsystem.

Every error carries an HTTP status hint so the API layer can translate it
without a lookup table.
"""

from __future__ import annotations


class FairDrawError(Exception):
    """Base class for draw subsystem errors."""

    status_code = 500

    def __init__(self, detail: str, status_code: int | None = None) -> None:
        self.detail = detail
        if status_code is not None:
            self.status_code = status_code
        super().__init__(detail)


class DuplicateCommitmentError(FairDrawError):
    """A live commitment already exists for the raffle."""

    status_code = 409


class SeedNotFoundError(FairDrawError):
    """A reveal was attempted without a matching pending commitment."""

    status_code = 404


class DrawAlreadyConductedError(FairDrawError):
    """The raffle's commitment has already been consumed by a draw."""

    status_code = 409


class InvalidDrawParameters(FairDrawError):
    """Draw parameters are out of range (e.g. ``total_tickets < 1``)."""

    status_code = 400


class VerificationInputError(FairDrawError):
    """The audit record to verify is missing or malformed."""

    status_code = 422


class AuditRecordNotFound(VerificationInputError):
    status_code = 404


class ExternalEntropyUnavailable(FairDrawError):
    """External entropy could not be fetched; callers fall back to crypto-only."""

    status_code = 503


class AuditLogWriteError(FairDrawError):
    """The draw could not be logged and therefore did not happen."""

    status_code = 500


class AuditLogImmutableError(FairDrawError):
    """An update or delete was attempted on an audit log entry."""

    status_code = 500


__all__ = [
    "AuditLogImmutableError",
    "AuditLogWriteError",
    "AuditRecordNotFound",
    "DrawAlreadyConductedError",
    "DuplicateCommitmentError",
    "ExternalEntropyUnavailable",
    "FairDrawError",
    "InvalidDrawParameters",
    "SeedNotFoundError",
    "VerificationInputError",
]
