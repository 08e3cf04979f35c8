from datetime import datetime, timedelta, timezone

from fairdraw.db.engine import get_sessionmaker, make_engine
from fairdraw.draw import SeedCommitmentPublisher
from fairdraw.models import Base
from fairdraw.storage import SqlAlchemyDrawStore
from fairdraw import workflows


def main() -> None:
    """Seed the development database with sample commitments and draws."""
    engine = make_engine()

    # Drop and recreate all tables. Foreign keys are switched off for the drop
    # so SQLite does not refuse to remove referenced tables.
    with engine.connect() as conn:
        conn.exec_driver_sql("PRAGMA foreign_keys=OFF")
        Base.metadata.drop_all(bind=conn)
        conn.exec_driver_sql("PRAGMA foreign_keys=ON")

    Base.metadata.create_all(engine)
    store = SqlAlchemyDrawStore(get_sessionmaker(engine))
    publisher = SeedCommitmentPublisher(store)

    now = datetime.now(timezone.utc)

    # A completed, verified draw
    publisher.publish("raffle_demo_01", now + timedelta(minutes=5))
    result = workflows.run_draw(store, "raffle_demo_01", 500, 47)
    workflows.verify_draw(store, "raffle_demo_01", result.draw_id, verifier="seed_dev")

    # A completed draw nobody has verified yet
    publisher.publish("raffle_demo_02", now + timedelta(minutes=10))
    workflows.run_draw(store, "raffle_demo_02", 1200, 310)

    # A raffle still waiting for its draw
    commitment = publisher.publish("raffle_demo_03", now + timedelta(days=2))

    print("Seed data inserted.")
    print(f"raffle_demo_01 winner: ticket {result.winning_ticket_number} ({result.draw_id})")
    print(f"raffle_demo_03 commitment: {commitment.commitment_hash}")


if __name__ == "__main__":
    main()
