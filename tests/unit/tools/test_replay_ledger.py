# tests/unit/tools/test_replay_ledger.py
import json
import logging
from decimal import Decimal

import pytest

import replay_ledger


@pytest.fixture
def dataset() -> dict:
    return {
        "portfolios": [{"id": "P1", "name": "Growth"}],
        "brokers": [{"id": "XP", "name": "XP Investimentos", "country": "BR"}],
        "events": [
            {
                "event_type": "stock-operation",
                "symbol": "PETR4",
                "time": "2024-01-02T10:00:00Z",
                "portfolios": ["P1"],
                "broker": "XP",
                "kind": "purchase",
                "quantity": "100",
                "price": "10",
            },
            {
                "event_type": "stock-operation",
                "symbol": "PETR4",
                "time": "2024-01-03T10:00:00Z",
                "portfolios": ["P1"],
                "broker": "XP",
                "kind": "sale",
                "quantity": "40",
                "price": "12",
            },
        ],
        "prices": [{"symbol": "PETR4", "date": "2024-01-05", "close": "11"}],
    }


@pytest.fixture
def dataset_path(tmp_path, dataset):
    path = tmp_path / "ledger.json"
    path.write_text(json.dumps(dataset), encoding="utf-8")
    return str(path)


@pytest.fixture(autouse=True)
def reset_root_logger():
    yield
    logging.getLogger().handlers.clear()


def test_cli_writes_only_json_to_stdout(dataset_path, capsys):
    """
    GIVEN a dataset with a purchase and a partial sale
    WHEN the replay runs with INFO logging
    THEN stdout parses as JSON with the positions and logs go to stderr
    """
    exit_code = replay_ledger.cli([dataset_path, "--log-level", "info"])
    captured = capsys.readouterr()

    assert exit_code == 0
    result = json.loads(captured.out)
    position = result["positions"]["P1"]["PETR4"]
    assert Decimal(position["quantity"]) == Decimal("60")
    assert Decimal(position["realized_gain"]) == Decimal("80")
    assert result["performance"][0]["label"] == "2024-01-05"
    assert Decimal(result["performance"][0]["current_value"]) == Decimal("660")

    log_lines = [json.loads(line) for line in captured.err.strip().splitlines()]
    assert any(line["message"] == "Replayed 2 event(s)." for line in log_lines)


def test_cli_reports_failure_without_output(tmp_path, dataset, capsys):
    dataset["events"][0]["broker"] = "NOBODY"
    path = tmp_path / "bad.json"
    path.write_text(json.dumps(dataset), encoding="utf-8")

    exit_code = replay_ledger.cli([str(path)])
    captured = capsys.readouterr()

    assert exit_code == 1
    assert captured.out == ""
    assert "Ledger replay failed" in captured.err


@pytest.mark.asyncio
async def test_replay_restricted_to_one_portfolio(dataset):
    dataset["portfolios"].append({"id": "P2", "name": "Income"})
    dataset["events"][0]["portfolios"] = ["P1", "P2"]

    result = await replay_ledger.replay(dataset, "P2", "MONTHLY")

    assert list(result["positions"]) == ["P2"]
    assert Decimal(result["positions"]["P2"]["PETR4"]["quantity"]) == Decimal("100")
    assert result["performance"][0]["label"] == "2024-01-31"
