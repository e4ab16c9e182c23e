"""Tests for the rad-rater command line."""

import json

import pytest

from rad_rater import cli
from rad_rater.rating_store import RatingStore


@pytest.fixture
def run(settings, monkeypatch):
    """Run the CLI against the tmp_path settings instead of conf/."""
    monkeypatch.setattr(cli, "load_settings", lambda overrides=None: settings)

    def invoke(*argv):
        return cli.main(list(argv))
    return invoke


@pytest.fixture
def stored_session(settings, complete_answer):
    store = RatingStore(settings)
    store.start_session("alice")
    case = store.current_case()
    store.record_answer(case.id, complete_answer(store.current_phase().kind))
    return store.current_session


class TestParser:
    """Tests for argument parsing."""

    def test_overrides_are_collected(self):
        args = cli.build_parser().parse_args(["status", "alice", "storage.remote.backend=http"])
        assert args.command == "status"
        assert args.user_id == "alice"
        assert args.overrides == ["storage.remote.backend=http"]

    def test_command_required(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args([])


class TestCommands:
    """Tests for the sub-commands."""

    def test_status_without_session(self, run, capsys):
        assert run("status", "nobody") == 1
        assert "No stored session" in capsys.readouterr().out

    def test_status(self, run, stored_session, capsys):
        assert run("status", "alice") == 0
        out = capsys.readouterr().out
        assert "phase_1_active" in out
        assert "Quality Set" in out
        assert "1/9" in out

    def test_preview(self, run, settings, capsys):
        assert run("preview", "alice", "--dataset", "north") == 0
        out = capsys.readouterr().out
        assert "North (north): 3 cases" in out
        assert "A=" in out
        assert "Quality Set" not in out

    def test_preview_matches_session(self, run, stored_session, capsys):
        run("preview", "alice", "--dataset", "quality")
        out = capsys.readouterr().out
        for case_id in stored_session.phase("data_quality").scope("quality").case_ids():
            assert case_id in out

    def test_preview_rejects_sample_size(self, run):
        assert run("preview", "alice", "--sample-size", "4") == 2

    def test_preview_load_error(self, run, project, capsys):
        (project / "data" / "south.csv").unlink()
        assert run("preview", "alice") == 1
        assert "Checklist" in capsys.readouterr().out

    def test_export(self, run, stored_session, tmp_path):
        out_dir = tmp_path / "results"
        assert run("export", "alice", "--output-dir", str(out_dir)) == 0
        data = json.loads((out_dir / "rater_results_alice.json").read_text(encoding="utf-8"))
        assert data["audit"]["save_count"] == 1

    def test_reset_requires_confirmation(self, run, stored_session, settings):
        assert run("reset", "alice") == 0
        assert RatingStore(settings).persistence.load("alice") is not None
        assert run("reset", "alice", "--yes") == 0
        assert RatingStore(settings).persistence.load("alice") is None

    def test_list(self, run, stored_session, capsys):
        assert run("list") == 0
        out = capsys.readouterr().out
        assert "1 cached session(s)" in out
        assert "alice" in out
        assert "1/9" in out

    def test_list_empty(self, run, capsys):
        assert run("list") == 0
        assert "No cached sessions" in capsys.readouterr().out
