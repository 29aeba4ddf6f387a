from __future__ import annotations

import io
import json
from contextlib import contextmanager

from app.repositories import SettlementRepository
from settlement.settlement_run import iter_notifications, run_settlements
from settlement.workflow import SettlementWorkflow


def test_iter_notifications_reads_json_lines():
    stream = io.StringIO('\n{"eventName": "SettlementRequested"}\nnot json\n\n{"topics": []}\n')

    assert list(iter_notifications(stream)) == [
        {"eventName": "SettlementRequested"},
        "not json",
        {"topics": []},
    ]


def test_iter_notifications_reads_json_array():
    stream = io.StringIO('[\n  {"a": 1},\n  {"b": 2}\n]\n')

    assert list(iter_notifications(stream)) == [{"a": 1}, {"b": 2}]


def test_iter_notifications_empty_stream():
    assert list(iter_notifications(io.StringIO(""))) == []


def test_run_settlements_summarizes(tmp_path, test_settings, fixed_clock, decoded_notification):
    workflow = SettlementWorkflow(test_settings, clock=fixed_clock)
    summary_path = tmp_path / "reports" / "summary.json"

    summary = run_settlements(
        [decoded_notification, "not json", {"eventName": "MarketCreated"}],
        workflow,
        persist=False,
        summary_path=summary_path,
    )

    assert summary.received == 3
    assert summary.settled == 1
    assert summary.failed == 2
    assert {failure["failed_state"] for failure in summary.failures} == {"decoding"}
    written = json.loads(summary_path.read_text(encoding="utf-8"))
    assert written["settled"] == 1
    assert written["outcomes"][0]["market_id"] == "7"


def test_run_settlements_persists_each_run(db_session, test_settings, fixed_clock, decoded_notification):
    workflow = SettlementWorkflow(test_settings, clock=fixed_clock)

    @contextmanager
    def session_factory():
        yield db_session
        db_session.commit()

    summary = run_settlements(
        [decoded_notification, {"foo": "bar"}],
        workflow,
        session_factory=session_factory,
        init_db_fn=lambda: None,
    )

    records = SettlementRepository(db_session).list_recent()
    assert summary.received == 2
    assert sorted(record.state for record in records) == ["done", "failed"]
