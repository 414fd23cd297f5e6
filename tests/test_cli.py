"""Tests for the command-line interface."""
import json

import pytest

from carerota.cli import main


@pytest.fixture
def data(tmp_path):
    carers = tmp_path / "carers.csv"
    carers.write_text(
        "id,name,email,ratings,packages\n"
        "alice,Alice,,task-1:COMPETENT,pkg-1\n"
        "bob,Bob,,task-1:NOT_COMPETENT,pkg-1\n"
    )
    packages = tmp_path / "packages.csv"
    packages.write_text("id,name,postcode,tasks\npkg-1,Rose Cottage,AB1 2CD,task-1\n")
    entries = tmp_path / "entries.csv"
    entries.write_text(
        "id,package_id,carer_id,date,shift_type,start_time,end_time,is_confirmed\n"
        "e1,pkg-1,bob,2025-08-04,DAY,09:00,17:00,0\n"
    )
    return ["--carers", str(carers), "--packages", str(packages),
            "--entries", str(entries), "--package", "pkg-1"]


class TestCheck:
    """carerota check"""

    def test_reports_errors(self, data, capsys):
        code = main(["check", *data, "--week", "2025-08-06"])
        out = capsys.readouterr().out
        assert code == 1
        assert "week of 2025-08-04: 1 entries" in out
        assert "MIN_COMPETENT_STAFF" in out

    def test_json_and_export(self, data, capsys, tmp_path):
        export = tmp_path / "violations.csv"
        code = main(["check", *data, "--week", "2025-08-04", "--json", "--export", str(export)])
        body = json.loads(capsys.readouterr().out)
        assert code == 1
        assert body["entries"] == 1
        assert [v["rule"] for v in body["violations"]] == ["MIN_COMPETENT_STAFF", "COMPETENCY_PAIRING"]
        assert export.exists()

    def test_clean_week(self, data, capsys):
        assert main(["check", *data, "--week", "2025-08-11"]) == 0
        assert "No violations." in capsys.readouterr().out


class TestValidate:
    """carerota validate"""

    def test_valid(self, data, capsys):
        code = main(["validate", *data, "--carer", "alice", "--date", "2025-08-04", "--shift", "day"])
        assert code == 0
        assert "Valid placement." in capsys.readouterr().out

    def test_refused(self, data, capsys):
        code = main(["validate", *data, "--carer", "bob", "--date", "2025-08-05", "--shift", "NIGHT", "--json"])
        body = json.loads(capsys.readouterr().out)
        assert code == 1
        assert body["isValid"] is False

    def test_bad_config(self, data, tmp_path, capsys):
        config = tmp_path / "bad.json"
        config.write_text('{"weekly_hour_limit": -1}')
        code = main(["validate", *data, "--config", str(config),
                     "--carer", "alice", "--date", "2025-08-04", "--shift", "DAY"])
        assert code == 2
        assert "error:" in capsys.readouterr().err

    def test_unknown_package(self, data, capsys):
        args = [a if a != "pkg-1" else "pkg-9" for a in data]
        assert main(["check", *args, "--week", "2025-08-04"]) == 2
