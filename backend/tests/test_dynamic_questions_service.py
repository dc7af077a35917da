from __future__ import annotations

import pytest

from competency_engine.config import Settings
from competency_engine.dynamic_questions import build_service
from competency_engine.errors import StoreUnavailable
from competency_engine.telemetry import capture_events


def test_effective_levels_cover_the_whole_catalog(service, competency_store) -> None:
    competency_store.seed("learner-1", "comp-b", 2)

    levels = service.get_effective_levels("learner-1")

    assert levels == {"comp-a": 0, "comp-b": 2, "comp-c": 0, "comp-d": 0}
    assert list(levels) == ["comp-a", "comp-b", "comp-c", "comp-d"]


def test_effective_levels_are_stable_within_ttl(service, competency_store, catalog_store) -> None:
    first = service.get_effective_levels("learner-1")
    second = service.get_effective_levels("learner-1")

    assert first == second
    assert competency_store.reads == 1
    assert catalog_store.calls == 1


def test_stored_levels_outside_the_catalog_are_ignored(service, competency_store) -> None:
    competency_store.seed("learner-1", "retired", 3)

    assert "retired" not in service.get_effective_levels("learner-1")


def test_new_profile_gets_an_even_spread(service) -> None:
    questions = service.get_dynamic_questions("learner-1", 6)

    counts = {}
    for question in questions:
        counts[question.competency_id] = counts.get(question.competency_id, 0) + 1
    assert counts == {"comp-a": 2, "comp-b": 2, "comp-c": 1, "comp-d": 1}
    assert {question.competency_level for question in questions} == {0}


def test_default_budget_is_used_when_none_given(service) -> None:
    assert len(service.get_dynamic_questions("learner-1")) == 20


def test_mastered_profile_gets_no_questions(service, competency_store, question_store) -> None:
    for competency_id in ("comp-a", "comp-b", "comp-c", "comp-d"):
        competency_store.seed("learner-1", competency_id, 3)

    assert service.get_dynamic_questions("learner-1", 10) == []
    assert question_store.requests == []


def test_selection_is_reported(service) -> None:
    with capture_events() as events:
        service.get_dynamic_questions("learner-1", 4)

    selected = [event for event in events if event.name == "dynamic_questions_selected"]
    assert selected[0].payload["requested"] == 4
    assert selected[0].payload["selected"] == 4


def test_submit_answer_updates_the_next_selection(service) -> None:
    change = service.submit_answer("learner-1", "comp-a", True)

    assert (change.previous_level, change.new_level) == (0, 1)
    assert service.get_effective_levels("learner-1")["comp-a"] == 1


def test_submit_answer_for_unknown_competency(service, competency_store) -> None:
    with pytest.raises(LookupError):
        service.submit_answer("learner-1", "retired", True)
    assert competency_store.writes == []


def test_competency_stats(service, competency_store) -> None:
    competency_store.seed("learner-1", "comp-a", 3)
    competency_store.seed("learner-1", "comp-b", 1)

    stats = service.get_competency_stats("learner-1")

    assert stats.total == 4
    assert stats.practiced == 2
    assert stats.mastered == 1
    assert stats.average_level == 2.0
    assert stats.by_level == {0: 2, 1: 1, 2: 0, 3: 1}


def test_stats_for_new_profile(service) -> None:
    stats = service.get_competency_stats("learner-1")

    assert stats.practiced == 0
    assert stats.average_level == 0.0
    assert stats.by_level[0] == 4


def test_recommended_competencies_start_with_lowest_levels(service, competency_store) -> None:
    competency_store.seed("learner-1", "comp-a", 2)
    competency_store.seed("learner-1", "comp-b", 3)
    competency_store.seed("learner-1", "comp-c", 1)

    recommended = service.get_recommended_competencies("learner-1", limit=5)

    assert [definition.id for definition in recommended] == ["comp-d", "comp-c", "comp-a"]


def test_recommendation_limit(service) -> None:
    recommended = service.get_recommended_competencies("learner-1", limit=2)

    assert [definition.id for definition in recommended] == ["comp-a", "comp-b"]


def test_competencies_by_level(service, competency_store) -> None:
    competency_store.seed("learner-1", "comp-c", 2)
    competency_store.seed("learner-1", "comp-a", 2)

    at_two = service.get_competencies_by_level("learner-1", 2)

    assert [definition.id for definition in at_two] == ["comp-a", "comp-c"]
    assert len(service.get_competencies_by_level("learner-1", 0, limit=1)) == 1


def test_competencies_by_level_rejects_unknown_level(service) -> None:
    with pytest.raises(ValueError):
        service.get_competencies_by_level("learner-1", 4)


def test_clear_caches_reloads_catalog(service, catalog_store, competency_store) -> None:
    service.get_effective_levels("learner-1")

    service.clear_caches()
    service.get_effective_levels("learner-1")

    assert catalog_store.calls == 2
    assert competency_store.reads == 2
    assert service.cache_stats()["catalog_loaded"] is True


def test_empty_catalog_is_not_remembered(service, catalog_store, definitions) -> None:
    catalog_store.definitions = []
    assert service.get_dynamic_questions("learner-1", 5) == []

    catalog_store.definitions = list(definitions)

    assert len(service.get_effective_levels("learner-1")) == 4
    assert catalog_store.calls == 2


def test_build_service_wires_shared_settings(competency_store, catalog_store, question_store) -> None:
    settings = Settings(
        COMPETENCY_CACHE_TTL_SECONDS=30,
        COMPETENCY_STORE_TIMEOUT_SECONDS=1,
        COMPETENCY_DEFAULT_MAX_QUESTIONS=3,
    )
    built = build_service(
        competencies=competency_store,
        catalog=catalog_store,
        questions=question_store,
        settings=settings,
    )
    try:
        assert built.cache.ttl_seconds == 30
        assert len(built.get_dynamic_questions("learner-1")) == 3
    finally:
        built.close()


def test_answer_naming_its_question_is_logged(service, answer_store) -> None:
    service.submit_answer(" learner-1 ", "comp-b", False, question_id="comp-b-q3")
    service.submit_answer("learner-1", "comp-b", True)

    assert [(a.profile_id, a.competency_id, a.question_id, a.is_correct) for a in answer_store.answers] == [
        ("learner-1", "comp-b", "comp-b-q3", False)
    ]


def test_failed_answer_log_leaves_level_alone(service, answer_store, competency_store) -> None:
    answer_store.error = StoreUnavailable("answer log down")

    with pytest.raises(StoreUnavailable):
        service.submit_answer("learner-1", "comp-a", True, question_id="comp-a-q1")

    assert competency_store.writes == []
    assert service.get_effective_levels("learner-1")["comp-a"] == 0
