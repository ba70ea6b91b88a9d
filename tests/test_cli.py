"""Test the command line entry point."""

import json
from unittest.mock import patch

import pytest

from conftest import FakeDirectoryClient, service_principal
from msgraph_list_sync.cli import _build_store, build_parser, main
from msgraph_list_sync.config import Settings
from msgraph_list_sync.exceptions import DirectoryServiceError
from msgraph_list_sync.storage import LocalFileListStore, SharePointListStore


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("SHAREPOINT_SITE", "SHAREPOINT_LIST", "LIST_SYNC_LOCAL_FILE", "GRAPH_SCOPES"):
        monkeypatch.delenv(name, raising=False)


def patched_client(entities):
    fake = FakeDirectoryClient(entities=entities)
    return patch("msgraph_list_sync.cli.AsyncDirectoryClient", return_value=fake)


def sso_entities():
    return {
        "servicePrincipals": [
            service_principal("sp1", "app-1", "Payroll"),
            service_principal("sp2", "app-2", "Travel"),
        ]
    }


def test_parser_rejects_two_destinations():
    with pytest.raises(SystemExit):
        build_parser().parse_args(["guest-users", "--local-file", "a.json", "--blob", "b.json"])


def test_print_report_by_default(capsys, tmp_path):
    with patched_client(sso_entities()):
        code = main(["service-principals", "--env-file", str(tmp_path / "none.env")])

    assert code == 0
    out = capsys.readouterr().out
    assert "Payroll" in out
    assert "Travel" in out


def test_csv_export(tmp_path):
    out_file = tmp_path / "sso.csv"
    with patched_client(sso_entities()):
        code = main(["service-principals", "--csv", str(out_file), "--env-file", str(tmp_path / "none.env")])

    assert code == 0
    lines = out_file.read_text(encoding="utf-8").splitlines()
    assert lines[0].startswith("DisplayName,AppId")
    assert len(lines) == 3


def test_sync_to_local_file(tmp_path):
    store_file = tmp_path / "sso.json"
    with patched_client(sso_entities()):
        code = main([
            "service-principals", "--local-file", str(store_file),
            "--env-file", str(tmp_path / "none.env"),
        ])

    assert code == 0
    data = json.loads(store_file.read_text(encoding="utf-8"))
    assert {row["AppId"] for row in data["rows"].values()} == {"app-1", "app-2"}


def test_dry_run_writes_nothing(tmp_path):
    store_file = tmp_path / "sso.json"
    with patched_client(sso_entities()):
        code = main([
            "service-principals", "--local-file", str(store_file), "--dry-run",
            "--env-file", str(tmp_path / "none.env"),
        ])

    assert code == 0
    assert not store_file.exists()


def test_sharepoint_list_without_site_fails(tmp_path):
    with patched_client(sso_entities()):
        code = main([
            "service-principals", "--sharepoint-list", "SSO Apps",
            "--env-file", str(tmp_path / "none.env"),
        ])
    assert code == 1


def test_fetch_failure_exits_non_zero(tmp_path, capsys):
    entities = {"servicePrincipals": DirectoryServiceError("Failed to list servicePrincipals")}
    with patched_client(entities):
        code = main(["service-principals", "--env-file", str(tmp_path / "none.env")])

    assert code == 1
    assert "Failed to list servicePrincipals" in capsys.readouterr().err


def test_sharepoint_destination_from_settings():
    settings = Settings(
        sharepoint_site="https://contoso.sharepoint.com/sites/IT", sharepoint_list="SSO Apps"
    )
    args = build_parser().parse_args(["service-principals"])

    store = _build_store(args, settings, FakeDirectoryClient())

    assert isinstance(store, SharePointListStore)
    assert store.list_name == "SSO Apps"


def test_local_file_flag_overrides_sharepoint_settings(tmp_path):
    settings = Settings(
        sharepoint_site="https://contoso.sharepoint.com/sites/IT", sharepoint_list="SSO Apps"
    )
    args = build_parser().parse_args(
        ["service-principals", "--local-file", str(tmp_path / "sso.json")]
    )

    store = _build_store(args, settings, FakeDirectoryClient())

    assert isinstance(store, LocalFileListStore)


def test_sharepoint_list_setting_without_site_fails(tmp_path, monkeypatch):
    monkeypatch.setenv("SHAREPOINT_LIST", "SSO Apps")
    with patched_client(sso_entities()):
        code = main(["service-principals", "--env-file", str(tmp_path / "none.env")])
    assert code == 1
