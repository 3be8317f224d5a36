"""
Tests for the analysis CLI helpers.
"""

import io
import json

from src.analysis.analyze import parse_arguments, read_records, run
from src.analysis.engine import AnalysisEngine
from src.analysis.models import AnalysisConfig


def _engine(detector, batch_size=100):
    engine = AnalysisEngine(detector=detector, config=AnalysisConfig(batch_size=batch_size))
    engine.initialize(start_batching=False)
    return engine


class TestReadRecords:
    """Tests for read_records."""

    def test_skips_blank_and_malformed_lines(self):
        stream = io.StringIO('{"id": "a"}\n\n{oops\n{"id": "b"}\n')

        assert read_records(stream) == [{"id": "a"}, {"id": "b"}]

    def test_skips_json_that_is_not_an_object(self):
        stream = io.StringIO('5\n[1, 2]\n"text"\n{"id": "a"}\n')

        assert read_records(stream) == [{"id": "a"}]


class TestRun:
    """Tests for run."""

    def test_full_analysis(self, trained_detector, threat_record, typical_features):
        records = [
            {**threat_record, "features": typical_features},
            {"features": {"confidence_score": "unknown"}},
        ]
        out = io.StringIO()

        stats = run(_engine(trained_detector), records, out, batch_only=False)

        assert stats == {"total": 2, "analyzed": 1, "anomalies": 0, "rejected": 1}
        line = json.loads(out.getvalue().splitlines()[0])
        assert line["analysis"]["threat_id"] == "ti-0001"
        assert "engine_version" in line

    def test_batch_only(self, trained_detector, typical_features, suspicious_features):
        records = [{"features": typical_features}, {"features": suspicious_features}] * 2
        out = io.StringIO()

        stats = run(_engine(trained_detector, batch_size=3), records, out, batch_only=True)

        assert stats == {"total": 4, "analyzed": 4, "anomalies": 2, "rejected": 0}
        assert len(out.getvalue().splitlines()) == 4

    def test_batch_with_invalid_record_rejects_only_that_record(
        self, trained_detector, typical_features
    ):
        records = [{"features": typical_features}, {"features": {"confidence_score": "?"}}]
        out = io.StringIO()

        stats = run(_engine(trained_detector), records, out, batch_only=True)

        assert stats == {"total": 2, "analyzed": 1, "anomalies": 0, "rejected": 1}
        assert len(out.getvalue().splitlines()) == 1

    def test_non_object_record_is_rejected(self, trained_detector, typical_features):
        out = io.StringIO()

        stats = run(_engine(trained_detector), [5, {"features": typical_features}], out, False)

        assert stats == {"total": 2, "analyzed": 1, "anomalies": 0, "rejected": 1}


class TestArguments:
    """Tests for parse_arguments."""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("REDIS_HOST", raising=False)

        args = parse_arguments(["records.jsonl"])

        assert args.input == "records.jsonl"
        assert args.batch_only is False
        assert args.redis_host is None
