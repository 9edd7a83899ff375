"""CliRunner tests for the query, explain and options commands."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from taskq import config
from taskq.cli import app
from taskq.model import UserField


TASKS = [
    {
        "path": "work/report.md",
        "title": "Write report",
        "status": "open",
        "due": "2025-01-01",
        "tags": ["work"],
        "properties": {"effort": 3},
    },
    {
        "path": "work/release.md",
        "title": "Ship release",
        "status": "done",
        "due": "2025-01-02",
        "completedDate": "2025-01-02",
        "tags": ["work"],
    },
    {"path": "garden.md", "title": "Water plants", "status": "open", "tags": ["home"]},
]

ORG_CONTENT = """* TODO Call plumber :home:
  DEADLINE: <2025-01-03 Fri>
* DONE Pay rent
  CLOSED: [2025-01-01 Wed 09:00]
"""


@pytest.fixture
def tasks_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> str:
    """Write the sample task export and run from its directory."""
    path = tmp_path / "tasks.json"
    path.write_text(json.dumps(TASKS), encoding="utf-8")
    monkeypatch.chdir(tmp_path)
    return str(path)


def test_query_default_lists_all_tasks(tasks_file: str) -> None:
    """Without a filter every task should be listed by due date."""
    runner = CliRunner()

    result = runner.invoke(app, ["query", "--no-color", "--date", "2025-01-02", tasks_file])

    assert result.exit_code == 0
    assert result.stdout.splitlines() == [
        "open Write report due 2025-01-01 #work (work/report.md)",
        "done Ship release due 2025-01-02 #work (work/release.md)",
        "open Water plants #home (garden.md)",
    ]


def test_query_filter_and_group(tasks_file: str) -> None:
    """Filters and grouping should shape the output."""
    runner = CliRunner()

    result = runner.invoke(
        app,
        [
            "query",
            "--no-color",
            "--filter",
            "status is open",
            "--group-key",
            "due",
            "--date",
            "2025-01-02",
            tasks_file,
        ],
    )

    assert result.exit_code == 0
    assert result.stdout.splitlines() == [
        "Overdue (1)",
        "  open Write report due 2025-01-01 #work (work/report.md)",
        "",
        "No due date (1)",
        "  open Water plants #home (garden.md)",
    ]


def test_query_no_matches(tasks_file: str) -> None:
    """Queries matching nothing should print No results."""
    runner = CliRunner()

    result = runner.invoke(app, ["query", "--no-color", "-f", "tags contains travel", tasks_file])

    assert result.exit_code == 0
    assert "No results" in result.stdout


def test_query_json_hierarchical(tasks_file: str) -> None:
    """JSON output should carry flat and hierarchical groups."""
    runner = CliRunner()

    result = runner.invoke(
        app,
        [
            "query",
            "--no-color",
            "--out",
            "json",
            "--group-key",
            "status",
            "--subgroup-key",
            "tags",
            tasks_file,
        ],
    )

    assert result.exit_code == 0
    payload = json.loads(result.stdout)
    assert list(payload["groups"]) == ["open", "done"]
    assert list(payload["hierarchicalGroups"]["open"]) == ["home", "work"]


def test_query_sort_by_title_descending(tasks_file: str) -> None:
    """Sort options should reorder the tasks."""
    runner = CliRunner()

    result = runner.invoke(
        app,
        ["query", "--no-color", "--sort-key", "title", "--sort-direction", "desc", tasks_file],
    )

    assert result.exit_code == 0
    paths = [line.rsplit(" (", 1)[1].rstrip(")") for line in result.stdout.splitlines()]
    assert paths == ["work/report.md", "garden.md", "work/release.md"]


def test_query_user_field_filter(tasks_file: str) -> None:
    """User fields from config should be filterable."""
    runner = CliRunner()
    original_fields = list(config.CONFIG_USER_FIELDS)

    try:
        config.CONFIG_USER_FIELDS[:] = [UserField("effort", "effort", "Effort", "number")]
        result = runner.invoke(
            app, ["query", "--no-color", "-f", "user:effort is-greater-than 2", tasks_file]
        )
    finally:
        config.CONFIG_USER_FIELDS[:] = original_fields

    assert result.exit_code == 0
    assert result.stdout.splitlines() == [
        "open Write report due 2025-01-01 #work (work/report.md)"
    ]


def test_query_org_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Org files should be queryable alongside JSON exports."""
    org_path = tmp_path / "home.org"
    org_path.write_text(ORG_CONTENT, encoding="utf-8")
    monkeypatch.chdir(tmp_path)
    runner = CliRunner()

    result = runner.invoke(
        app, ["query", "--no-color", "-f", "status.isCompleted is-not-checked", "home.org"]
    )

    assert result.exit_code == 0
    assert result.stdout.splitlines() == ["open Call plumber due 2025-01-03 #home (home.org#1)"]


def test_query_named_filter(tasks_file: str) -> None:
    """Named filters should come from the config."""
    runner = CliRunner()
    original_filters = dict(config.CONFIG_CUSTOM_FILTERS)

    try:
        config.CONFIG_CUSTOM_FILTERS.clear()
        config.CONFIG_CUSTOM_FILTERS.update({"home": "tags contains home"})
        result = runner.invoke(app, ["query", "--no-color", "--named", "home", tasks_file])
        missing = runner.invoke(app, ["query", "--no-color", "--named", "work", tasks_file])
    finally:
        config.CONFIG_CUSTOM_FILTERS.clear()
        config.CONFIG_CUSTOM_FILTERS.update(original_filters)

    assert result.exit_code == 0
    assert result.stdout.splitlines() == ["open Water plants #home (garden.md)"]
    assert missing.exit_code == 2
    assert "Unknown named filter" in missing.output


def test_query_file(tasks_file: str, tmp_path: Path) -> None:
    """Saved queries should supply the filter and display options."""
    query_path = tmp_path / "query.json"
    query_path.write_text(
        json.dumps(
            {
                "conjunction": "and",
                "children": [
                    {"type": "condition", "property": "status", "operator": "is", "value": "done"}
                ],
                "groupKey": "status",
            }
        ),
        encoding="utf-8",
    )
    runner = CliRunner()

    result = runner.invoke(
        app, ["query", "--no-color", "--query-file", str(query_path), tasks_file]
    )

    assert result.exit_code == 0
    assert result.stdout.splitlines() == [
        "done (1)",
        "  done Ship release due 2025-01-02 #work (work/release.md)",
    ]


@pytest.mark.parametrize(
    ("extra_args", "message"),
    [
        (["-f", "status is"], "Invalid filter syntax"),
        (["-f", "priority is high"], "Unknown property"),
        (["-f", "status is open", "--named", "x"], "Use only one of"),
        (["--date", "someday"], "Invalid date"),
        (["--out", "xml"], "--out must be one of"),
        (["--batch-size", "0"], "--batch-size must be positive"),
        (["--sort-direction", "up"], "--sort-direction must be asc or desc"),
    ],
)
def test_query_usage_errors(tasks_file: str, extra_args: list[str], message: str) -> None:
    """Bad arguments should exit with a usage error."""
    runner = CliRunner()

    result = runner.invoke(app, ["query", "--no-color", *extra_args, tasks_file])

    assert result.exit_code == 2
    assert message in result.output


def test_query_missing_file(tmp_path: Path) -> None:
    """Missing task files should be reported."""
    runner = CliRunner()

    result = runner.invoke(app, ["query", "--no-color", str(tmp_path / "missing.json")])

    assert result.exit_code == 2
    assert "not found" in result.output


def test_explain_text(tasks_file: str) -> None:
    """Explain should report the optimization decision."""
    runner = CliRunner()

    result = runner.invoke(
        app, ["explain", "--no-color", "-f", "status is open and title contains report"]
    )

    assert result.exit_code == 0
    assert result.stdout.splitlines() == [
        "Can optimize: yes",
        "Strategy: single",
        "  status is 'open'",
    ]


def test_explain_json_unsafe(tasks_file: str) -> None:
    """Explain JSON should include the reason for a full scan."""
    runner = CliRunner()

    result = runner.invoke(
        app, ["explain", "--no-color", "--out", "json", "-f", "status is open or due is-empty"]
    )

    assert result.exit_code == 0
    payload = json.loads(result.stdout)
    assert payload["analysis"]["canOptimize"] is False
    assert "OR group" in payload["analysis"]["reason"]


def test_options_text(tasks_file: str) -> None:
    """Options should list statuses, tags and folders."""
    runner = CliRunner()

    result = runner.invoke(app, ["options", "--no-color", tasks_file])

    assert result.exit_code == 0
    assert result.stdout.splitlines() == [
        "Statuses:",
        "  open (To do)",
        "  done (Done)",
        "Tags:",
        "  home",
        "  work",
        "Folders:",
        "  (Root)",
        "  work",
    ]


def test_options_json(tasks_file: str) -> None:
    """Options JSON should be machine readable."""
    runner = CliRunner()

    result = runner.invoke(app, ["options", "--no-color", "--out", "json", tasks_file])

    assert result.exit_code == 0
    payload = json.loads(result.stdout)
    assert payload["tags"] == ["home", "work"]
    assert payload["folders"] == ["(Root)", "work"]
