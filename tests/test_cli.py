from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from notegrid import __version__
from notegrid.cli import app
from notegrid.client.api_client import ApiClient
from notegrid.identity import generate_identity, is_valid_identity

runner = CliRunner()


@pytest.fixture
def cli_api(api_server, monkeypatch: pytest.MonkeyPatch) -> str:
    url = api_server("table")
    monkeypatch.setenv("NOTEGRID_API_URL", url)
    monkeypatch.setenv("NOTEGRID_DEBOUNCE_MS", "10")
    return url


def _invoke(*args: str, input: str | None = None):
    return runner.invoke(app, list(args), input=input)


def _tasks_json() -> list[dict]:
    result = _invoke("tasks", "list", "--json")
    assert result.exit_code == 0, result.output
    return json.loads(result.stdout)


def test_version() -> None:
    result = _invoke("version")

    assert result.exit_code == 0
    assert __version__ in result.stdout


def test_root_help_lists_namespaces() -> None:
    result = _invoke("--help")

    assert result.exit_code == 0
    for name in ("identity", "tasks", "links", "export", "import", "serve", "register"):
        assert name in result.stdout


def test_identity_new_prints_uuid() -> None:
    result = _invoke("identity", "new")

    assert result.exit_code == 0
    assert is_valid_identity(result.stdout.strip())


def test_data_commands_require_identity(cli_api: str) -> None:
    result = _invoke("tasks", "list")

    assert result.exit_code == 1
    assert "No identity stored" in result.stdout


def test_register_and_task_lifecycle(cli_api: str) -> None:
    result = _invoke("register")
    assert result.exit_code == 0, result.output
    identity = _invoke("identity", "show").stdout.strip()
    assert is_valid_identity(identity)

    result = _invoke("tasks", "add", "Buy milk", "--quadrant", "do", "--tag", "home", "--color", "blue")
    assert result.exit_code == 0, result.output
    assert "Added" in result.stdout

    [task] = _tasks_json()
    assert task["title"] == "Buy milk"
    assert task["quadrant"] == "do"
    assert task["tags"] == ["home"]
    assert task["color"] == "#3b82f6"
    prefix = task["id"][:8]

    assert _invoke("tasks", "update", prefix, "--kanban", "in-progress").exit_code == 0
    assert _invoke("tasks", "done", prefix).exit_code == 0
    [task] = _tasks_json()
    assert task["kanbanStatus"] == "in-progress"
    assert task["completed"] is True

    assert _invoke("tasks", "update", prefix, "--quadrant", "none").exit_code == 0
    assert _tasks_json()[0]["quadrant"] is None

    remote = ApiClient(cli_api, identity).fetch_tasks()
    assert [t.title for t in remote] == ["Buy milk"]
    assert remote[0].completed is True

    assert _invoke("tasks", "rm", prefix).exit_code == 0
    assert _tasks_json() == []
    assert ApiClient(cli_api, identity).fetch_tasks() == []


def test_tasks_move(cli_api: str) -> None:
    _invoke("register")
    for title, quadrant in (("a", "do"), ("b", "decide"), ("c", "do")):
        _invoke("tasks", "add", title, "--quadrant", quadrant)
    b_id = next(task["id"] for task in _tasks_json() if task["title"] == "b")

    result = _invoke("tasks", "move", b_id, "--group", "quadrant", "--to", "do", "--index", "1")

    assert result.exit_code == 0, result.output
    tasks = _tasks_json()
    assert [task["title"] for task in tasks] == ["a", "b", "c"]
    assert tasks[1]["quadrant"] == "do"


def test_tasks_views(cli_api: str) -> None:
    _invoke("register")
    _invoke("tasks", "add", "plan", "--quadrant", "decide", "--kanban", "todo")

    matrix = _invoke("tasks", "list", "--view", "matrix")
    kanban = _invoke("tasks", "list", "--view", "kanban")
    bad = _invoke("tasks", "list", "--view", "gantt")

    assert "Schedule" in matrix.stdout
    assert "todo" in kanban.stdout
    assert bad.exit_code == 1


def test_list_view_groups_by_palette_colour(cli_api: str) -> None:
    _invoke("register")
    _invoke("tasks", "add", "sky", "--color", "blue")
    _invoke("tasks", "add", "fire", "--color", "red")
    _invoke("tasks", "add", "sea", "--color", "blue")

    result = _invoke("tasks", "list")

    assert result.exit_code == 0, result.output
    out = result.stdout
    assert "Red (1)" in out and "Blue (2)" in out
    assert out.index("Red (1)") < out.index("fire") < out.index("Blue (2)") < out.index("sky") < out.index("sea")
    assert "Green" not in out


def test_invalid_task_input(cli_api: str) -> None:
    _invoke("register")

    assert _invoke("tasks", "add", "x", "--color", "mauve").exit_code == 1
    assert _invoke("tasks", "add", "x", "--quadrant", "someday").exit_code == 1
    assert _invoke("tasks", "done", "deadbeef").exit_code == 1
    assert _tasks_json() == []


def test_links_quick_save(cli_api: str) -> None:
    _invoke("register")

    result = _invoke("links", "add", "https://www.example.com/page")
    assert result.exit_code == 0, result.output
    duplicate = _invoke("links", "add", "https://www.example.com/page")
    not_web = _invoke("links", "add", "ftp://files.example.com")

    assert duplicate.exit_code == 1
    assert "already saved" in duplicate.stdout
    assert not_web.exit_code == 1
    links = json.loads(_invoke("links", "list", "--json").stdout)
    assert len(links) == 1
    assert links[0]["title"] == "www.example.com"
    assert links[0]["favicon"] == "https://www.google.com/s2/favicons?domain=www.example.com&sz=64"

    assert _invoke("links", "rm", links[0]["id"]).exit_code == 0
    assert json.loads(_invoke("links", "list", "--json").stdout) == []


def test_export_and_import(cli_api: str, tmp_path: Path) -> None:
    _invoke("register")
    _invoke("tasks", "add", "keep me")
    backup = tmp_path / "backup.json"

    result = _invoke("export", str(backup))
    assert result.exit_code == 0, result.output
    document = json.loads(backup.read_text())
    assert [task["title"] for task in document["tasks"]] == ["keep me"]
    assert "exportedAt" in document

    _invoke("tasks", "add", "scratch")
    result = _invoke("import", str(backup), "--yes")
    assert result.exit_code == 0, result.output
    assert [task["title"] for task in _tasks_json()] == ["keep me"]

    bad = tmp_path / "bad.json"
    bad.write_text("[]")
    result = _invoke("import", str(bad), "--yes")
    assert result.exit_code == 1
    assert "expected an object" in result.stdout


def test_import_declined(cli_api: str, tmp_path: Path) -> None:
    _invoke("register")
    backup = tmp_path / "b.json"
    backup.write_text(json.dumps({"tasks": [{"title": "x"}]}))

    result = _invoke("import", str(backup), input="n\n")

    assert result.exit_code == 1
    assert _tasks_json() == []


def test_export_to_stdout(cli_api: str) -> None:
    _invoke("register")
    _invoke("tasks", "add", "out")

    result = _invoke("export", "-")

    assert result.exit_code == 0
    assert json.loads(result.stdout)["tasks"][0]["title"] == "out"


def test_login_logout(cli_api: str) -> None:
    identity = generate_identity()
    ApiClient(cli_api).register_identity(identity)

    assert _invoke("identity", "login", "not-a-uuid").exit_code == 1
    assert _invoke("identity", "login", generate_identity()).exit_code == 1
    result = _invoke("identity", "login", identity)
    assert result.exit_code == 0, result.output
    assert _invoke("identity", "show").stdout.strip() == identity

    assert _invoke("identity", "logout").exit_code == 0
    assert _invoke("identity", "show").exit_code == 1


def test_register_conflict(cli_api: str) -> None:
    identity = generate_identity()
    ApiClient(cli_api).register_identity(identity)

    result = _invoke("register", "--uuid", identity)

    assert result.exit_code == 1
    assert "already registered" in result.stdout


def test_delete_account(cli_api: str) -> None:
    _invoke("register")
    identity = _invoke("identity", "show").stdout.strip()

    result = _invoke("delete-account", "--yes")

    assert result.exit_code == 0, result.output
    assert ApiClient(cli_api).check_exists(identity) is False
    assert _invoke("identity", "show").exit_code == 1


def test_unreachable_server_reports_error(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("NOTEGRID_API_URL", "http://127.0.0.1:9")
    monkeypatch.setenv("NOTEGRID_REQUEST_TIMEOUT_S", "0.5")

    result = _invoke("register")

    assert result.exit_code == 1
    assert "Could not reach the server" in result.stdout
