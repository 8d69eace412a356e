"""Tests for the command line host."""

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from ad_reconcile import main
from ad_reconcile.models import StateFile

BASE_DN = "DC=x,DC=com"

runner = CliRunner()


@pytest.fixture
def config_path(tmp_path: Path) -> str:
    path = tmp_path / "config.json"
    path.write_text(
        json.dumps(
            {
                "ldap": {
                    "server_host": "dc.x.com",
                    "bind_dn": f"cn=admin,{BASE_DN}",
                    "bind_pw": "pw",
                    "search_base": BASE_DN,
                }
            }
        )
    )
    return str(path)


@pytest.fixture
def connected(directory, monkeypatch):
    monkeypatch.setattr(main, "connect", lambda settings: directory)
    return directory


def write_resource(tmp_path: Path, kind: str, spec: dict) -> str:
    path = tmp_path / f"{kind}.json"
    path.write_text(json.dumps({"kind": kind, "spec": spec}))
    return str(path)


USER_SPEC = {
    "first_name": "Jane",
    "last_name": "Doe",
    "login": "jdoe",
    "email": "jane.doe@x.com",
    "ou": f"OU=Old,{BASE_DN}",
}


def apply(config_path: str, resource: str, state: str, *extra: str):
    args = ["apply", "--config", config_path, "--resource", resource, "--state", state]
    return runner.invoke(main.app, args + list(extra), catch_exceptions=False)


def read_state(path: str) -> StateFile:
    return StateFile.model_validate_json(Path(path).read_text())


def test_apply_creates_then_updates(tmp_path, config_path, connected):
    state = str(tmp_path / "state.json")
    result = apply(config_path, write_resource(tmp_path, "user", USER_SPEC), state)
    assert result.exit_code == 0
    assert read_state(state).id == f"cn=jane doe,ou=old,{BASE_DN.lower()}"
    assert len(connected.writes_of("add")) == 1

    moved = dict(USER_SPEC, ou=f"OU=New,{BASE_DN}")
    result = apply(config_path, write_resource(tmp_path, "user", moved), state)
    assert result.exit_code == 0
    assert len(connected.writes_of("modify_dn")) == 1
    assert read_state(state).id == f"cn=jane doe,ou=new,{BASE_DN.lower()}"
    assert read_state(state).spec["ou"] == f"OU=New,{BASE_DN}"


def test_apply_dry_run(tmp_path, config_path, connected):
    state = str(tmp_path / "state.json")
    result = apply(config_path, write_resource(tmp_path, "user", USER_SPEC), state, "--dry-run")
    assert result.exit_code == 0
    assert connected.writes == []
    assert not Path(state).exists()


def test_apply_group(tmp_path, config_path, connected):
    member = f"cn=bob,OU=Users,{BASE_DN}"
    spec = {"name": "admins", "base_ou": f"OU=Groups,{BASE_DN}", "members": [member]}
    state = str(tmp_path / "state.json")
    result = apply(config_path, write_resource(tmp_path, "group", spec), state)
    assert result.exit_code == 0
    assert read_state(state).spec["members"] == [member]


def test_apply_kind_mismatch(tmp_path, config_path, connected):
    state = tmp_path / "state.json"
    state.write_text(StateFile(kind="group", id="cn=x").model_dump_json())
    result = apply(config_path, write_resource(tmp_path, "user", USER_SPEC), str(state))
    assert result.exit_code == 1


def test_refresh_clears_identity_of_vanished_object(tmp_path, config_path, connected):
    state = str(tmp_path / "state.json")
    apply(config_path, write_resource(tmp_path, "user", USER_SPEC), state)
    connected.delete(f"cn=Jane Doe,OU=Old,{BASE_DN}")
    result = runner.invoke(
        main.app, ["refresh", "--config", config_path, "--state", state], catch_exceptions=False
    )
    assert result.exit_code == 0
    assert read_state(state).id == ""


def test_destroy(tmp_path, config_path, connected):
    state = str(tmp_path / "state.json")
    apply(config_path, write_resource(tmp_path, "user", USER_SPEC), state)
    result = runner.invoke(
        main.app, ["destroy", "--config", config_path, "--state", state], catch_exceptions=False
    )
    assert result.exit_code == 0
    assert connected.writes_of("delete") == [(f"cn=Jane Doe,OU=Old,{BASE_DN}",)]
    assert not Path(state).exists()


def test_missing_config(tmp_path):
    result = runner.invoke(main.app, ["show-config", "--config", str(tmp_path / "nope.json")])
    assert result.exit_code == 1


def test_show_config(config_path):
    result = runner.invoke(main.app, ["show-config", "--config", config_path])
    assert result.exit_code == 0
