"""Unit tests for the replay CLI."""

from __future__ import annotations

import json
import textwrap
from pathlib import Path

import pytest

from swf_decider.main import build_parser, load_history, load_pipeline, main

PIPELINE_MODULE = textwrap.dedent(
    """
    from swf_decider import create_activity_task, create_series_pipeline, create_timer_task

    pipeline = create_series_pipeline(
        [
            create_activity_task("fetch", {"order": "$$Workflow.orderId"}),
            create_timer_task("cool-down", 60),
        ]
    )


    def build():
        return pipeline
    """
)


@pytest.fixture
def workspace(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, restore_root_logging) -> Path:
    (tmp_path / "replay_orders_definition.py").write_text(PIPELINE_MODULE, encoding="utf-8")
    monkeypatch.syspath_prepend(str(tmp_path))
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    return tmp_path


def _started(order_id: str) -> dict:
    return {
        "eventId": 1,
        "eventType": "WorkflowExecutionStarted",
        "workflowExecutionStartedEventAttributes": {"input": json.dumps({"orderId": order_id})},
    }


def test_parser_requires_a_command() -> None:
    with pytest.raises(SystemExit):
        build_parser().parse_args([])


def test_replay_prints_decisions(workspace: Path, capsys: pytest.CaptureFixture[str]) -> None:
    history = workspace / "history.json"
    history.write_text(json.dumps([_started("A-7")]), encoding="utf-8")

    code = main(
        [
            "replay",
            "--history",
            str(history),
            "--pipeline",
            "replay_orders_definition:pipeline",
            "--workflow-id",
            "order-A-7",
        ]
    )

    assert code == 0
    decisions = json.loads(capsys.readouterr().out)
    assert decisions == [
        {
            "decisionType": "ScheduleActivityTask",
            "scheduleActivityTaskDecisionAttributes": {
                "activityType": {"name": "fetch"},
                "activityId": "fetch",
                "input": '{"order":"A-7"}',
            },
        }
    ]


def test_replay_accepts_a_saved_decision_task(
    workspace: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    history = workspace / "task.json"
    history.write_text(
        json.dumps(
            {
                "taskToken": "t",
                "workflowExecution": {"workflowId": "order-B-1", "runId": "r"},
                "events": [
                    _started("B-1"),
                    {
                        "eventId": 2,
                        "eventType": "ActivityTaskCompleted",
                        "activityTaskCompletedEventAttributes": {"activityId": "fetch"},
                    },
                ],
            }
        ),
        encoding="utf-8",
    )

    code = main(
        ["replay", "--history", str(history), "--pipeline", "replay_orders_definition:build"]
    )

    assert code == 0
    decisions = json.loads(capsys.readouterr().out)
    assert decisions[0]["decisionType"] == "StartTimer"
    assert decisions[0]["startTimerDecisionAttributes"]["control"] == "cool-down"


def test_replay_reports_failures(workspace: Path) -> None:
    history = workspace / "history.json"
    history.write_text(json.dumps([_started("A-7")]), encoding="utf-8")

    code = main(
        ["replay", "--history", str(history), "--pipeline", "replay_orders_definition:missing"]
    )

    assert code == 1


def test_invalid_configuration_exits_with_2(
    workspace: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("DECIDER_MAX_REASON_LENGTH", "not-a-number")

    code = main(["replay", "--history", "h.json", "--pipeline", "replay_orders_definition:build"])

    assert code == 2


def test_load_pipeline_rejects_bad_specs(workspace: Path) -> None:
    with pytest.raises(ValueError):
        load_pipeline("replay_orders_definition")
    with pytest.raises(TypeError):
        load_pipeline("json:JSONDecoder")


def test_load_history_rejects_unknown_shapes(tmp_path: Path) -> None:
    path = tmp_path / "bad.json"
    path.write_text(json.dumps({"nope": 1}), encoding="utf-8")

    with pytest.raises(ValueError):
        load_history(path)
