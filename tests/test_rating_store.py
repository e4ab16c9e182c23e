"""
Tests for RatingStore: session start/resume, saving through the persistence
facade, the single-flight guard and reset.
"""

import json

import pytest

from rad_rater.blinding import build_blinded_order
from rad_rater.errors import LoadError, PersistenceError, SaveInProgressError, ValidationError
from rad_rater.persistence import SessionPersistence
from rad_rater.rating_store import RatingStore
from rad_rater.response_models.answer import ModelScoreAnswer
from rad_rater.response_models.status import PhaseKind, SessionStatus
from rad_rater.storage import LocalSessionCache, MemorySessionStore


class UnreachableStore(MemorySessionStore):
    name = "unreachable"

    def _get(self, user_id):
        raise PersistenceError("timeout")

    def _put(self, user_id, payload):
        raise PersistenceError("timeout")

    def _delete(self, user_id):
        raise PersistenceError("timeout")


def answer_current(store, complete_answer, **kwargs):
    case = store.current_case()
    return store.record_answer(case.id, complete_answer(store.current_phase().kind, **kwargs))


class TestStartSession:
    """Tests for starting and resuming sessions."""

    def test_new_session(self, store, remote):
        session = store.start_session("  alice ", meta="radiologist")
        assert session.user_id == "alice"
        assert session.user.meta == "radiologist"
        assert session.status == SessionStatus.PHASE_1_ACTIVE
        assert session.config.sample_size_per_dataset == 3
        assert [s.case_count for p in session.phases for s in p.scopes] == [3, 3, 3]
        assert store.current_session is session
        assert "alice" in remote.payloads
        assert store.last_report.ok

    def test_user_id_required(self, store):
        with pytest.raises(ValueError):
            store.start_session("   ")
        assert store.current_session is None

    def test_sample_size_must_be_allowed(self, store):
        with pytest.raises(ValueError):
            store.start_session("alice", sample_size=7)

    def test_resume_restores_cursor_without_resampling(self, settings, persistence, clock, complete_answer):
        """Phase 1 at case 2/5: reloading restores cursor=2 and the same case ids."""
        first = RatingStore(settings, persistence=persistence, now=clock)
        first.start_session("alice", sample_size=5)
        answer_current(first, complete_answer)
        answer_current(first, complete_answer)
        scope = first.current_scope()
        assert scope.cursor == 2
        case_ids = [s.case_ids() for p in first.current_session.phases for s in p.scopes]

        second = RatingStore(settings, persistence=persistence, now=clock)
        session = second.start_session("alice", sample_size=3)
        assert second.current_scope().key == "quality"
        assert second.current_scope().cursor == 2
        assert [s.case_ids() for p in session.phases for s in p.scopes] == case_ids
        assert session.config.sample_size_per_dataset == 5
        assert session.status == SessionStatus.PHASE_1_ACTIVE

    def test_resume_from_local_when_remote_is_down(self, settings, tmp_path, clock, complete_answer):
        local = LocalSessionCache(str(tmp_path / "cache"))
        store = RatingStore(settings, persistence=SessionPersistence(local, UnreachableStore()), now=clock)
        store.start_session("alice")
        outcome = answer_current(store, complete_answer)
        assert outcome.advanced
        assert store.last_report.local is True
        assert store.last_report.remote is False

        resumed = RatingStore(settings, persistence=SessionPersistence(local, UnreachableStore()), now=clock)
        resumed.start_session("alice")
        assert resumed.current_scope().cursor == 1

    def test_load_error_creates_nothing(self, store, project, remote):
        (project / "data" / "north.csv").unlink()
        with pytest.raises(LoadError):
            store.start_session("alice")
        assert store.current_session is None
        assert remote.payloads == {}
        assert store.persistence.local.get("alice") is None

    def test_meta_updated_on_resume(self, settings, persistence, clock):
        RatingStore(settings, persistence=persistence, now=clock).start_session("alice", meta="first")
        session = RatingStore(settings, persistence=persistence, now=clock).start_session("alice", meta="second")
        assert session.user.meta == "second"

    def test_legacy_session_is_upgraded_and_completed(self, store, remote):
        remote.put("alice", {
            "version": 3,
            "user": {"id": "alice", "meta": "", "created_at": "2025-01-01T00:00:00Z"},
            "config": {"sample_size_per_dataset": 3},
            "datasets": {
                "north": {
                    "cases": [{"id": "north-7"}, {"id": "north-2"}, {"id": "north-4"}],
                    "cursor": 1,
                    "answers": {"north-7": {"overall_score": "5"}},
                },
            },
        })
        session = store.start_session("alice")
        assert session.status == SessionStatus.PHASE_1_ACTIVE
        assert session.phase("data_quality").scope("quality").case_count == 3
        north = session.phase("model_eval").scope("north")
        assert north.case_ids() == ["north-7", "north-2", "north-4"]
        assert north.answers["north-7"].overall_score == 5
        assert session.phase("model_eval").scope("south").case_count == 3
        assert remote.payloads["alice"]["version"] == 4

    def test_unreadable_stored_session_is_not_replaced(self, store, remote):
        remote.put("alice", {"version": 42})
        with pytest.raises(LoadError):
            store.start_session("alice")
        assert remote.payloads["alice"] == {"version": 42}


class TestRecordAnswer:
    """Tests for saving through the store."""

    def test_transition_survives_reload(self, settings, persistence, clock, complete_answer):
        store = RatingStore(settings, persistence=persistence, now=clock)
        store.start_session("alice")
        phase_2_ids = [s.case_ids() for s in store.current_session.phase("model_eval").scopes]
        outcomes = [answer_current(store, complete_answer) for _ in range(3)]
        assert [len(o.transitions) for o in outcomes] == [0, 0, 1]
        assert store.current_session.status == SessionStatus.PHASE_2_ACTIVE

        reloaded = RatingStore(settings, persistence=persistence, now=clock).start_session("alice")
        assert reloaded.status == SessionStatus.PHASE_2_ACTIVE
        assert [s.case_ids() for s in reloaded.phase("model_eval").scopes] == phase_2_ids
        assert reloaded.position.phase == "model_eval"

    def test_saved_answer_reaches_remote(self, store, remote, complete_answer):
        store.start_session("alice")
        case = store.current_case()
        answer_current(store, complete_answer, comment="looks fine")
        stored = remote.payloads["alice"]["phases"][0]["scopes"][0]["answers"][case.id]
        assert stored["comment"] == "looks fine"
        assert stored["saved_at"]

    def test_validation_error_does_not_persist(self, store, remote):
        store.start_session("alice")
        before = json.dumps(remote.payloads["alice"], sort_keys=True)
        with pytest.raises(ValidationError):
            store.record_answer(store.current_case().id, ModelScoreAnswer())
        assert json.dumps(remote.payloads["alice"], sort_keys=True) == before

    def test_second_save_while_in_flight_is_rejected(self, store, complete_answer):
        store.start_session("alice")
        store._save_lock.acquire()
        try:
            with pytest.raises(SaveInProgressError):
                answer_current(store, complete_answer)
            assert store.persist_local() is False
        finally:
            store._save_lock.release()
        assert answer_current(store, complete_answer).advanced

    def test_requires_session(self, store, complete_answer):
        with pytest.raises(ValueError):
            store.record_answer("q1", complete_answer(PhaseKind.DATA_QUALITY))


class TestViewHelpers:
    """Tests for navigation and display helpers."""

    def test_blinded_order_for_model_eval_case(self, store, settings, complete_answer):
        store.start_session("alice")
        for _ in range(3):
            answer_current(store, complete_answer)
        case = store.current_case()
        assert store.current_phase().kind == PhaseKind.MODEL_EVAL
        assert store.blinded_order() == build_blinded_order("alice", "north", case.id, settings.model_ids)

    def test_current_answer_and_prev(self, store, complete_answer):
        store.start_session("alice")
        assert store.current_answer() is None
        answer_current(store, complete_answer, comment="first")
        assert store.prev().moved
        assert store.current_answer().comment == "first"

    def test_select_locked_scope(self, store):
        store.start_session("alice")
        with pytest.raises(ValueError):
            store.select_scope("model_eval", "north")

    def test_progress(self, store, complete_answer):
        store.start_session("alice")
        answer_current(store, complete_answer)
        assert store.progress().describe() == "1/9 (this dataset: 1/3)"


class TestExportAndReset:
    """Tests for export and reset."""

    def test_export_writes_results_file(self, store, settings, complete_answer):
        store.start_session("alice")
        answer_current(store, complete_answer)
        path = store.export()
        assert path == settings.resolve_path("exports") / "rater_results_alice.json"
        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["user"]["id"] == "alice"
        assert data["audit"]["save_count"] == 1

    def test_reset_deletes_everything(self, store, remote, complete_answer):
        session = store.start_session("alice")
        case_ids = [s.case_ids() for p in session.phases for s in p.scopes]
        answer_current(store, complete_answer)

        assert store.reset().ok
        assert store.current_session is None
        assert "alice" not in remote.payloads
        assert store.persistence.local.get("alice") is None

        fresh = store.start_session("alice")
        assert fresh.audit.save_count == 0
        assert [s.case_ids() for p in fresh.phases for s in p.scopes] == case_ids

    def test_reset_other_user_keeps_current(self, store):
        store.start_session("alice")
        store.reset("bob")
        assert store.current_session is not None

    def test_persist_local_without_session(self, store):
        assert store.persist_local() is False
