from .base import Base

# import models so Alembic/autoloaders can discover mappers
from .draw import (  # noqa: F401
    DrawAuditRecord,
    DrawVerificationRecord,
    SeedCommitmentRecord,
)

__all__ = [
    "Base",
    "DrawAuditRecord",
    "DrawVerificationRecord",
    "SeedCommitmentRecord",
]
