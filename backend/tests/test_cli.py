import json

from hoor.extensions import db
from hoor.services.settings_service import get_setting


def test_system_init_seeds_settings(app, db_session):
    runner = app.test_cli_runner()
    result = runner.invoke(args=["system", "init"])
    assert result.exit_code == 0, result.output
    assert "Seeded 4 default setting(s)" in result.output
    assert get_setting("currency") == "SAR"


def test_backup_export_and_import(app, variant, tmp_path):
    runner = app.test_cli_runner()
    path = tmp_path / "backup.json"

    result = runner.invoke(args=["backup", "export", str(path)])
    assert result.exit_code == 0, result.output
    document = json.loads(path.read_text(encoding="utf-8"))
    assert len(document["data"]["variants"]) == 1

    result = runner.invoke(args=["backup", "import", str(path), "--yes"])
    assert result.exit_code == 0, result.output
    assert "variants: 1" in result.output


def test_backup_import_rejects_wrong_version(app, db_session, tmp_path):
    path = tmp_path / "old.json"
    path.write_text(json.dumps({"version": 0, "data": {}}), encoding="utf-8")
    result = app.test_cli_runner().invoke(args=["backup", "import", str(path), "--yes"])
    assert result.exit_code != 0
    assert "Unsupported backup version" in result.output


def test_check_balances(app, customer):
    runner = app.test_cli_runner()
    result = runner.invoke(args=["ledger", "check-balances"])
    assert result.exit_code == 0
    assert "PASS" in result.output

    customer.current_balance_cents = 500
    db.session.commit()
    result = runner.invoke(args=["ledger", "check-balances"])
    assert result.exit_code == 1
    assert "drift=500" in result.output
