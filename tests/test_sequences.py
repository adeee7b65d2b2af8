"""Tests for document number sequences."""

from sqlmodel import Session

from app.database import unit_of_work
from app.models.ledger import NumberSequence
from app.repositories.sequence_repo import SequenceRepository

from .conftest import run_concurrently


class TestSequenceRepository:
    def test_first_number_of_a_year(self, session):
        repo = SequenceRepository()
        assert repo.next_document_number(session, "PO", 2026) == "PO-2026-000001"
        assert repo.next_document_number(session, "PO", 2026) == "PO-2026-000002"
        assert repo.next_document_number(session, "PO", 2027) == "PO-2027-000001"
        assert repo.next_document_number(session, "BK", 2026) == "BK-2026-000001"

    def test_existing_counter_continues(self, session):
        session.add(NumberSequence(name="po:2026", value=41))
        session.commit()

        assert SequenceRepository().next_document_number(session, "PO", 2026) == "PO-2026-000042"
        row = session.get(NumberSequence, "po:2026")
        session.refresh(row)
        assert row.value == 42

    def test_concurrent_first_numbers_are_distinct(self, file_engine):
        repo = SequenceRepository()

        def allocate():
            with Session(file_engine) as session:
                with unit_of_work(session):
                    return repo.next_document_number(session, "BK", 2026)

        results = run_concurrently(allocate, allocate, allocate)

        assert sorted(results) == ["BK-2026-000001", "BK-2026-000002", "BK-2026-000003"]
