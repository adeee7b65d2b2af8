# app/repositories/sequence_repo.py
from sqlalchemy import update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlmodel import Session, select

from app.models.ledger import NumberSequence

_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


class SequenceRepository:
    """
    Named counters for human readable document numbers.

    A missing counter is created with INSERT .. ON CONFLICT DO NOTHING, so
    two transactions asking for the first value of the same counter both
    fall through to the UPDATE; its row lock hands out each value exactly
    once.
    """

    def _ensure(self, session: Session, name: str) -> None:
        insert = _INSERTS[session.get_bind().dialect.name]
        stmt = (
            insert(NumberSequence)
            .values(name=name, value=0)
            .on_conflict_do_nothing(index_elements=["name"])
        )
        session.exec(stmt)  # type: ignore[call-overload]

    def next_value(self, session: Session, name: str) -> int:
        stmt = (
            update(NumberSequence)
            .where(NumberSequence.name == name)
            .values(value=NumberSequence.value + 1)
            .execution_options(synchronize_session=False)
        )
        result = session.exec(stmt)  # type: ignore[call-overload]
        if result.rowcount == 0:
            self._ensure(session, name)
            session.exec(stmt)  # type: ignore[call-overload]

        value_stmt = select(NumberSequence.value).where(NumberSequence.name == name)
        return int(session.exec(value_stmt).one())

    def next_document_number(self, session: Session, prefix: str, year: int) -> str:
        """
        Allocate the next '<PREFIX>-<year>-<6-digit>' number.

        Each prefix counts from 1 again every year.
        """
        value = self.next_value(session, f"{prefix.lower()}:{year}")
        return f"{prefix}-{year}-{value:06d}"
