"""Named counters used for sequential student and employee numbers."""

from sqlalchemy import Column, Integer, String, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from backend.database import Base


class Counter(Base):
    __tablename__ = "counters"

    name = Column(String(50), primary_key=True)
    value = Column(Integer, nullable=False)


def next_counter_value(db: Session, name: str, start: int) -> int:
    """Increment ``name`` and return the new value; the first call returns ``start``.

    The increment is a single conditional UPDATE, so two transactions never get the
    same number. Runs inside the caller's transaction.
    """
    for _ in range(2):
        result = db.execute(
            update(Counter)
            .where(Counter.name == name)
            .values(value=Counter.value + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount:
            return db.execute(select(Counter.value).where(Counter.name == name)).scalar_one()

        try:
            with db.begin_nested():
                db.add(Counter(name=name, value=start))
            return start
        except IntegrityError:
            # Another transaction created the row first; increment it instead.
            continue

    raise RuntimeError(f"Could not allocate a value for counter '{name}'")
