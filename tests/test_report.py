"""Test report printing and CSV export."""

import csv

from msgraph_list_sync.models import OutputRecord
from msgraph_list_sync.report import export_csv, print_report, report_columns


def records():
    return [
        OutputRecord(key="a", display="Alpha", fields={"DisplayName": "Alpha", "AppId": "a", "Groups": "G1; G2"}),
        OutputRecord(key="b", display="Beta", fields={"DisplayName": "Beta", "AppId": "b", "Enabled": True}),
    ]


def test_report_columns_first_seen_order():
    assert report_columns(records()) == ["DisplayName", "AppId", "Groups", "Enabled"]


def test_export_csv(tmp_path):
    path = tmp_path / "out" / "report.csv"
    export_csv(records(), str(path))

    with open(path, newline="", encoding="utf-8") as f:
        rows = list(csv.DictReader(f))

    assert rows[0] == {"DisplayName": "Alpha", "AppId": "a", "Groups": "G1; G2", "Enabled": ""}
    assert rows[1]["Enabled"] == "True"


def test_export_csv_with_explicit_columns(tmp_path):
    path = tmp_path / "report.csv"
    export_csv(records(), str(path), columns=["AppId"])
    assert path.read_text(encoding="utf-8").splitlines() == ["AppId", "a", "b"]


def test_print_report(capsys):
    print_report(records(), title="Apps")
    out = capsys.readouterr().out
    assert "Apps (2 rows)" in out
    assert "G1; G2" in out
    assert "Beta" in out


def test_print_empty_report(capsys):
    print_report([], columns=["AppId"], title="Nothing")
    assert "Nothing (0 rows)" in capsys.readouterr().out
