from sqlalchemy import BigInteger, Integer
from sqlalchemy.orm import DeclarativeBase

from fairdraw.db.metadata import metadata_obj

# Commitment and verification ids. SQLite only autoincrements INTEGER PRIMARY KEY.
ID_TYPE = BigInteger().with_variant(Integer, "sqlite")


class Base(DeclarativeBase):
    """Declarative base for the draw tables, sharing one naming convention."""

    metadata = metadata_obj
