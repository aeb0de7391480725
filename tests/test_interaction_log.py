"""
Tests for interaction logs and saved reports.
"""

import json

from stock_research.generation_client import GenerationError
from stock_research.interaction_log import InteractionLog, make_serializable
from stock_research.research_state import ErrorKind


class TestInteractionLog:
    def test_disabled_writes_nothing(self, tmp_path):
        log = InteractionLog(log_dir=tmp_path / "logs", response_dir=tmp_path / "out")
        record = log.start("AAPL", 1)
        assert log.finish(record, final_response="memo") is None
        assert log.persist_response(subject="AAPL", response="memo") is None
        assert not (tmp_path / "logs").exists()

    def test_finish_writes_document(self, tmp_path):
        log = InteractionLog(log_dir=tmp_path / "logs", enabled=True)
        record = log.start("AAPL", 3)
        record.step("outcome", {"result": GenerationError(ErrorKind.TRANSPORT_FAILURE, "offline")})

        path = log.finish(record, error="transport_failure: offline", superseded=True)

        document = json.loads(path.read_text(encoding="utf-8"))
        assert document["subject"] == "AAPL"
        assert document["request_id"] == 3
        assert document["superseded"] is True
        assert document["steps"][0]["context"]["result"] == {"kind": "transport_failure", "message": "offline"}

    def test_report_filename_is_sanitised(self, tmp_path):
        log = InteractionLog(response_dir=tmp_path, enabled=True)
        path = log.persist_response(subject="../BRK/B?", response="memo")
        assert path.parent == tmp_path
        assert path.name.endswith("_BRKB.md")

    def test_unwritable_directory_is_logged_not_raised(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("x", encoding="utf-8")
        log = InteractionLog(log_dir=blocker, enabled=True)
        assert log.finish(log.start("AAPL", 1), final_response="memo") is None


class TestMakeSerializable:
    def test_unknown_objects_become_repr(self):
        assert make_serializable({"x": object}) == {"x": repr(object)}

    def test_tuples_become_lists(self):
        assert make_serializable((1, (2, 3))) == [1, [2, 3]]
