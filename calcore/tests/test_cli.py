from click.testing import CliRunner

from calcore import cli

RANGE_ARGS = [
    "--start",
    "2024-01-01T10:00:00Z",
    "--end",
    "2024-01-01T11:00:00Z",
    "--from",
    "2024-01-01T00:00:00Z",
    "--to",
    "2024-02-01T00:00:00Z",
]


def test_expand_prints_occurrences() -> None:
    runner = CliRunner()

    result = runner.invoke(
        cli.main, ["expand", "--rrule", "FREQ=WEEKLY;COUNT=3", *RANGE_ARGS]
    )

    assert result.exit_code == 0, result.output
    assert (
        "2024-01-08T10:00:00+00:00 2024-01-08T11:00:00+00:00" in result.output
    )
    assert "2024-01-22T10:00:00+00:00" not in result.output
    assert "3 occurrence(s)" in result.output


def test_expand_without_rule_prints_the_event_itself() -> None:
    result = CliRunner().invoke(cli.main, ["expand", *RANGE_ARGS])

    assert result.exit_code == 0, result.output
    assert "1 occurrence(s)" in result.output


def test_expand_rejects_invalid_rule() -> None:
    result = CliRunner().invoke(
        cli.main, ["expand", "--rrule", "FREQ=NEVER", *RANGE_ARGS]
    )

    assert result.exit_code == 1
    assert "Invalid event" in result.output


def test_expand_rejects_invalid_timestamp() -> None:
    args = list(RANGE_ARGS)
    args[1] = "2024-01-01 10:00"

    result = CliRunner().invoke(cli.main, ["expand", *args])

    assert result.exit_code == 2
    assert "RFC3339" in result.output


def test_init_db_requires_a_database(monkeypatch) -> None:
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.delenv("CALCORE_CONFIG", raising=False)

    result = CliRunner().invoke(cli.main, ["init-db"])

    assert result.exit_code == 1
    assert "No database configured" in result.output


def test_serve_runs_uvicorn(monkeypatch) -> None:
    calls = []

    import uvicorn

    monkeypatch.setattr(uvicorn, "run", lambda *a, **kw: calls.append((a, kw)))

    result = CliRunner().invoke(cli.main, ["serve", "--port", "9001"])

    assert result.exit_code == 0, result.output
    [(args, kwargs)] = calls
    assert args == ("calcore.api.app:app",)
    assert kwargs["port"] == 9001
