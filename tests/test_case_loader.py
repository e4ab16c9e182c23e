"""Tests for dataset loading and case sampling."""

import pytest

from rad_rater.case_loader import CaseLoader, normalize_row, read_csv_rows
from rad_rater.config import ColumnSpec, ModelColumn
from rad_rater.errors import LoadError
from rad_rater.response_models.status import PhaseKind
from rad_rater.sampler import seeded_sample
from rad_rater.session_machine import new_session

from conftest import write_csv


class TestReadCsvRows:
    """Tests for the pandas-backed CSV reader."""

    def test_values_are_strings(self, tmp_path):
        path = write_csv(tmp_path / "d.csv", ["id", "findings"], [["001", "Clear"], ["2", ""]])
        rows = read_csv_rows(path)
        assert rows == [{"id": "001", "findings": "Clear"}, {"id": "2", "findings": ""}]

    def test_blank_lines_skipped(self, tmp_path):
        path = tmp_path / "d.csv"
        path.write_text("id,findings\n1,a\n\n2,b\n", encoding="utf-8")
        assert [r["id"] for r in read_csv_rows(path)] == ["1", "2"]

    def test_quoted_newlines(self, tmp_path):
        path = tmp_path / "d.csv"
        path.write_text('id,findings\n1,"line one\nline two"\n', encoding="utf-8")
        assert read_csv_rows(path)[0]["findings"] == "line one\nline two"

    def test_missing_file(self, tmp_path):
        with pytest.raises(LoadError) as exc_info:
            read_csv_rows(tmp_path / "nope.csv")
        assert exc_info.value.remediation
        assert "Checklist" in exc_info.value.describe()

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.csv"
        path.write_text("", encoding="utf-8")
        with pytest.raises(LoadError):
            read_csv_rows(path)


class TestNormalizeRow:
    """Tests for row normalization."""

    def test_missing_columns(self):
        case = normalize_row({"id": " 7 "}, ColumnSpec())
        assert case.id == "7"
        assert case.findings == ""
        assert case.hardness is None
        assert case.cot is None
        assert case.models == {}

    def test_model_columns(self):
        columns = [ModelColumn(key="alpha", column="alpha_out", display="Alpha")]
        case = normalize_row({"id": "1", "alpha_out": " text "}, ColumnSpec(), columns)
        assert case.models == {"alpha": " text "}
        assert case.output_for("alpha") == "text"
        assert case.output_for("beta") == ""


class TestCaseLoader:
    """Tests for CaseLoader."""

    def test_load_model_eval_dataset(self, settings):
        loader = CaseLoader(settings)
        dataset = settings.phases[1].datasets[0]
        cases = loader.load_dataset(dataset, PhaseKind.MODEL_EVAL)
        assert len(cases) == 8
        assert cases[0].models["alpha"] == "alpha says 0"

    def test_data_quality_cases_have_no_models(self, settings):
        loader = CaseLoader(settings)
        cases = loader.load_dataset(settings.phases[0].datasets[0], PhaseKind.DATA_QUALITY)
        assert cases[0].models == {}
        assert cases[0].cot == "Reasoning 0"
        assert cases[0].hardness == "medium"

    def test_blank_id_rejected(self, settings):
        rows = [{"id": f"r{i}"} for i in range(11)]
        rows[3] = {"id": ""}
        loader = CaseLoader(settings, row_source=lambda path: rows)
        with pytest.raises(LoadError) as exc_info:
            loader.sample_cases("alice", settings.phases[0].datasets[0], PhaseKind.DATA_QUALITY, 5)
        assert "Row 4 has an empty 'id' value" in exc_info.value.remediation

    def test_duplicate_id_rejected(self, settings):
        loader = CaseLoader(settings, row_source=lambda path: [{"id": "a"}, {"id": "b"}, {"id": "a"}])
        with pytest.raises(LoadError) as exc_info:
            loader.load_dataset(settings.phases[0].datasets[0], PhaseKind.DATA_QUALITY)
        assert "Row 3 repeats case id 'a'" in exc_info.value.remediation

    def test_sample_indexes_every_row(self, settings):
        rows = [{"id": f"r{i}"} for i in range(11)]
        loader = CaseLoader(settings, row_source=lambda path: rows)
        dataset = settings.phases[0].datasets[0]
        cases = loader.sample_cases("alice", dataset, PhaseKind.DATA_QUALITY, 5)
        expected = seeded_sample([r["id"] for r in rows], 5, "alice::quality::sample")
        assert [c.id for c in cases] == expected

    def test_missing_id_column(self, settings):
        loader = CaseLoader(settings, row_source=lambda path: [{"name": "a"}])
        with pytest.raises(LoadError):
            loader.load_dataset(settings.phases[0].datasets[0], PhaseKind.DATA_QUALITY)

    def test_no_rows(self, settings):
        loader = CaseLoader(settings, row_source=lambda path: [])
        with pytest.raises(LoadError):
            loader.load_dataset(settings.phases[0].datasets[0], PhaseKind.DATA_QUALITY)

    def test_source_failure_becomes_load_error(self, settings):
        def broken(path):
            raise RuntimeError("disk on fire")
        loader = CaseLoader(settings, row_source=broken)
        with pytest.raises(LoadError, match="disk on fire"):
            loader.load_dataset(settings.phases[0].datasets[0], PhaseKind.DATA_QUALITY)

    def test_sampling_is_per_user_and_repeatable(self, settings):
        loader = CaseLoader(settings)
        dataset = settings.phases[1].datasets[0]
        alice = [c.id for c in loader.sample_cases("alice", dataset, PhaseKind.MODEL_EVAL, 5)]
        again = [c.id for c in loader.sample_cases("alice", dataset, PhaseKind.MODEL_EVAL, 5)]
        assert alice == again
        assert len(set(alice)) == 5


class TestPopulateSession:
    """Tests for sampling cases into a session."""

    def test_populates_every_scope(self, settings):
        session = new_session("alice", 3, settings.phases)
        populated = CaseLoader(settings).populate_session(session)
        assert populated == ["quality", "north", "south"]
        for phase in session.phases:
            for scope in phase.scopes:
                assert scope.case_count == 3
                assert scope.cursor == 0

    def test_never_resamples(self, settings):
        session = new_session("alice", 3, settings.phases)
        loader = CaseLoader(settings)
        loader.populate_session(session)
        before = [s.case_ids() for p in session.phases for s in p.scopes]

        session.config.sample_size_per_dataset = 5
        assert loader.populate_session(session) == []
        assert [s.case_ids() for p in session.phases for s in p.scopes] == before

    def test_load_error_leaves_session_untouched(self, settings, project):
        (project / "data" / "south.csv").unlink()
        session = new_session("alice", 3, settings.phases)
        before = session.model_dump()
        with pytest.raises(LoadError):
            CaseLoader(settings).populate_session(session)
        assert session.model_dump() == before
