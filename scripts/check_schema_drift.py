from __future__ import annotations

import sys

from alembic.autogenerate import api as ag_api
from alembic.runtime.migration import MigrationContext

from fairdraw.db.engine import make_engine
from fairdraw.models import Base


def _describe(ops, indent: int = 0) -> list[str]:
    lines = []
    for op in ops:
        lines.append(f"{'  ' * indent}- {op}")
        lines.extend(_describe(getattr(op, "ops", None) or [], indent + 1))
    return lines


def main() -> int:
    """Compare the live database with the draw models.

    Exit codes: 0 when they match, 1 on drift, 2 when the comparison failed.
    """
    engine = make_engine()
    target = engine.url.render_as_string(hide_password=True)
    try:
        with engine.connect() as connection:
            context = MigrationContext.configure(
                connection=connection,
                opts={
                    "compare_type": True,
                    "compare_server_default": True,
                    "render_as_batch": connection.dialect.name == "sqlite",
                },
            )
            upgrade_ops = ag_api.produce_migrations(context, Base.metadata).upgrade_ops
    except Exception as exc:
        print(f"Schema drift check: ERROR for {target}: {exc}", file=sys.stderr)
        return 2

    if upgrade_ops is None:
        print(f"Schema drift check: ERROR for {target}: missing upgrade ops.")
        return 2
    if upgrade_ops.is_empty():
        print(f"Schema drift check: OK, draw tables match the models on {target}.")
        return 0
    print(f"Schema drift check: FAILED for {target}. Run an Alembic migration for:")
    print("\n".join(_describe(upgrade_ops.ops or [])))
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
