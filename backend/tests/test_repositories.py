from __future__ import annotations

from contextlib import contextmanager

import pytest
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker

from competency_engine import stores
from competency_engine.db.base import Base
from competency_engine.db.models import UserCompetencyModel
from competency_engine.errors import StoreUnavailable
from competency_engine.repositories import competency_catalog, questions, user_answers, user_competencies


@pytest.fixture
def session_factory(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'competencies.sqlite'}", future=True)
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, expire_on_commit=False, future=True)
    yield factory
    engine.dispose()


@pytest.fixture
def session(session_factory):
    with session_factory() as db_session:
        yield db_session


@pytest.fixture
def seeded(session):
    algebra = competency_catalog.add(session, "ALG", "Algebra", competency_id="comp-a")
    geometry = competency_catalog.add(session, "GEO", "Geometry", "Shapes and angles", competency_id="comp-b")
    for index in range(3):
        questions.add(session, algebra.id, f"Algebra {index}", "Solve for x.", options=["1", "2"], correct_option="1")
    questions.add(session, geometry.id, "Triangle", "Sum of angles?", options=["180", "360", ""], year=2023)
    session.commit()
    return algebra, geometry


def test_catalog_lists_by_code(session, seeded) -> None:
    listed = competency_catalog.list_all(session)

    assert [definition.code for definition in listed] == ["ALG", "GEO"]
    assert listed[1].description == "Shapes and angles"


def test_questions_by_competency_name(session, seeded) -> None:
    found = questions.find_by_competency(session, "Algebra", 2)

    assert len(found) == 2
    assert {question.competency_id for question in found} == {"comp-a"}
    assert questions.find_by_competency(session, "Algebra", 0) == []
    assert questions.find_by_competency(session, "Calculus", 5) == []


def test_blank_options_are_dropped(session, seeded) -> None:
    (triangle,) = questions.find_by_competency(session, "Geometry", 5)

    assert triangle.options == ["180", "360"]
    assert triangle.year == 2023


def test_missing_row_reads_as_none(session, seeded) -> None:
    assert user_competencies.find_level(session, "learner-1", "comp-a") is None
    assert user_competencies.find_all_for_profile(session, "learner-1") == []


def test_upsert_inserts_then_updates(session, seeded) -> None:
    user_competencies.upsert(session, "learner-1", "comp-a", 1)
    record = user_competencies.upsert(session, "learner-1", "comp-a", 2)
    session.commit()

    assert record.level == 2
    assert record.last_evaluated_at.tzinfo is not None
    assert user_competencies.find_level(session, "learner-1", "comp-a") == 2
    assert len(user_competencies.find_all_for_profile(session, "learner-1")) == 1


@pytest.mark.parametrize("level", [0, 4])
def test_upsert_rejects_unpersisted_levels(session, seeded, level) -> None:
    with pytest.raises(ValueError):
        user_competencies.upsert(session, "learner-1", "comp-a", level)


def test_delete_reports_whether_a_row_existed(session, seeded) -> None:
    user_competencies.upsert(session, "learner-1", "comp-b", 1)

    assert user_competencies.delete(session, "learner-1", "comp-b") is True
    assert user_competencies.delete(session, "learner-1", "comp-b") is False


def test_explicit_zero_rows_are_invisible_and_purgeable(session, seeded) -> None:
    session.add(UserCompetencyModel(profile_id="legacy", competency_id="comp-a", level=0))
    session.add(UserCompetencyModel(profile_id="legacy", competency_id="comp-b", level=2))
    session.commit()

    assert user_competencies.find_level(session, "legacy", "comp-a") is None
    assert [record.competency_id for record in user_competencies.find_all_for_profile(session, "legacy")] == [
        "comp-b"
    ]
    assert user_competencies.level_distribution(session) == {0: 1, 2: 1}
    assert user_competencies.count_zero_levels(session) == 1
    assert user_competencies.purge_zero_levels(session) == 1
    assert user_competencies.count_zero_levels(session) == 0


def test_database_store_round_trip(monkeypatch, session_factory, seeded) -> None:
    @contextmanager
    def scope(*, commit: bool = True):
        with session_factory() as db_session:
            yield db_session
            if commit:
                db_session.commit()

    monkeypatch.setattr(stores, "session_scope", scope)
    store = stores.DatabaseCompetencyStore()

    store.upsert("learner-1", "comp-a", 3)

    assert store.find_level("learner-1", "comp-a") == 3
    assert [record.level for record in store.find_all_for_profile("learner-1")] == [3]
    assert store.delete("learner-1", "comp-a") is True
    assert stores.DatabaseCatalogStore().list_all()[0].id == "comp-a"
    assert len(stores.DatabaseQuestionStore().find_by_competency("Algebra", 10)) == 3


def test_database_errors_become_store_unavailable(monkeypatch) -> None:
    @contextmanager
    def broken(*, commit: bool = True):
        raise OperationalError("SELECT 1", {}, Exception("connection refused"))
        yield  # pragma: no cover

    monkeypatch.setattr(stores, "session_scope", broken)

    with pytest.raises(StoreUnavailable):
        stores.DatabaseCompetencyStore().find_all_for_profile("learner-1")
    with pytest.raises(StoreUnavailable):
        stores.DatabaseCatalogStore().list_all()


def test_answer_log_lists_newest_first(session, seeded) -> None:
    user_answers.record(session, " learner-1 ", "comp-a", "q-1", True)
    user_answers.record(session, "learner-1", "comp-b", "q-2", False)
    user_answers.record(session, "learner-2", "comp-a", "q-1", False)
    session.commit()

    recent = user_answers.list_recent(session, "learner-1")

    assert user_answers.count_for_profile(session, "learner-1") == 2
    assert {(answer.question_id, answer.is_correct) for answer in recent} == {("q-1", True), ("q-2", False)}
    assert recent[0].answered_at >= recent[1].answered_at
    assert all(answer.answered_at.tzinfo is not None for answer in recent)
    assert user_answers.list_recent(session, "learner-1", limit=1) == recent[:1]


def test_database_answer_store_records(monkeypatch, session_factory, seeded) -> None:
    @contextmanager
    def scope(*, commit: bool = True):
        with session_factory() as db_session:
            yield db_session
            if commit:
                db_session.commit()

    monkeypatch.setattr(stores, "session_scope", scope)

    record = stores.DatabaseAnswerStore().record_answer("learner-1", "comp-a", "q-7", True)

    assert record.question_id == "q-7"
    with session_factory() as db_session:
        assert user_answers.count_for_profile(db_session, "learner-1") == 1
