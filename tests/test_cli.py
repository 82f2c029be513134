"""Integration tests for main.py -- commands wired through build_app().

Each test builds the real object graph over a temp SQLite file and patches
only the PayrollClient methods, so login, storage, routing and the
presentation gate all run for real. A second build_app() on the same file
simulates an app restart.
"""

import argparse
from unittest.mock import patch

import pytest
from conftest import EMPLOYEE, TOKEN, FakeBiometrics

import main
from auth.biometrics import BiometricResult, verify_pin
from auth.session import SessionState
from core.config import Settings
from core.errors import NetworkError
from core.models import LoginResult, Receipt

_PAYLOAD = '{"employeeId": "123", "period": "202501", "type": "1"}'


@pytest.fixture
def settings(tmp_path, monkeypatch) -> Settings:
    monkeypatch.delenv("CREDENTIAL_KEY", raising=False)
    return Settings(
        _env_file=None,
        debug=True,
        device_db_url=f"sqlite:///{tmp_path / 'device.db'}",
        download_dir=str(tmp_path / "downloads"),
    )


@pytest.fixture
def build(settings):
    """Build an App; close every session's executor at teardown."""
    apps = []

    def _build(biometrics=None):
        app = main.build_app(settings, biometrics=biometrics or FakeBiometrics())
        apps.append(app)
        return app

    yield _build
    for app in apps:
        app.session.close()


def _login(app) -> int:
    with patch.object(app.client, "login", return_value=LoginResult(token=TOKEN, user=EMPLOYEE)):
        return main.cmd_login(app, argparse.Namespace(email="a@x.com", password="pw"))


class TestLoginCommand:
    def test_login_prints_name(self, build, capsys):
        app = build()
        assert _login(app) == 0
        assert "ORALIA URIBE GONZALEZ" in capsys.readouterr().out
        assert app.session.state is SessionState.AUTHENTICATED

    def test_network_failure_reports_error(self, build, capsys):
        app = build()
        with patch.object(app.client, "login", side_effect=NetworkError("refused")):
            code = main.cmd_login(app, argparse.Namespace(email="a@x.com", password="pw"))
        assert code == 1
        assert "Network connection error" in capsys.readouterr().out

    def test_blank_password_is_validation_error(self, build, capsys):
        app = build()
        assert main.cmd_login(app, argparse.Namespace(email="a@x.com", password="")) == 2
        assert "required" in capsys.readouterr().out


class TestRestart:
    def test_restart_is_locked_then_unlock(self, build, capsys):
        _login(build())

        restarted = build()
        assert restarted.session.state is SessionState.STORED_LOCKED

        assert main.cmd_unlock(restarted, argparse.Namespace()) == 0
        assert restarted.session.is_authenticated

    def test_unlock_failure_reported(self, build, capsys):
        _login(build())
        restarted = build(FakeBiometrics(outcome=BiometricResult(False, "mismatch")))
        assert main.cmd_unlock(restarted, argparse.Namespace()) == 1
        assert "Could not verify" in capsys.readouterr().out

    def test_logout_then_status(self, build, capsys):
        app = build()
        _login(app)
        main.cmd_logout(app, argparse.Namespace())
        capsys.readouterr()
        main.cmd_status(build(), argparse.Namespace())
        assert "logged_out" in capsys.readouterr().out


class TestReceiptsCommand:
    def test_csv_export(self, build, capsys):
        app = build()
        _login(app)
        capsys.readouterr()
        receipts = [
            Receipt(123, 202501, "15/01/2025", 1200.0, 50.0, 200.0, 1050.0),
            Receipt(123, 202424, "30/12/2024", 1200.0, 50.0, 200.0, 1050.0),
        ]
        with patch.object(app.client, "fetch_receipts", return_value=receipts):
            code = main.cmd_receipts(app, argparse.Namespace(year="2025", json=False, csv=True))

        assert code == 0
        assert capsys.readouterr().out.splitlines() == [
            "Periodo,Fecha de Pago,Percepciones,Prestaciones,Deducciones,Neto",
            "202501,15/01/2025,1200.0,50.0,200.0,1050.0",
        ]

    def test_csv_flag_parses(self):
        args = main.build_parser().parse_args(["receipts", "--year", "2025", "--csv"])
        assert args.csv and not args.json


class TestNotifyCommand:
    def test_locked_session_opens_receipt_after_unlock(self, build, settings, capsys, tmp_path):
        _login(build())
        restarted = build()

        with patch.object(restarted.client, "fetch_receipt_pdf", return_value=b"%PDF") as fetch:
            code = main.cmd_notify(restarted, argparse.Namespace(payload=_PAYLOAD, out=str(tmp_path)))

        assert code == 0
        fetch.assert_called_once_with(123, 202501, 1, TOKEN)
        assert (tmp_path / "recibo_123_202501_1.pdf").read_bytes() == b"%PDF"
        assert "Opened receipt 202501" in capsys.readouterr().out

    def test_no_session_gates_navigation(self, build, capsys):
        app = build()
        with patch.object(app.client, "fetch_receipt_pdf") as fetch:
            assert main.cmd_notify(app, argparse.Namespace(payload=_PAYLOAD, out=None)) == 0
        fetch.assert_not_called()
        assert "will open after you sign in" in capsys.readouterr().out

    def test_invalid_payload(self, build, capsys):
        app = build()
        bad = '{"employeeId": "123", "period": "enero", "type": "1"}'
        assert main.cmd_notify(app, argparse.Namespace(payload=bad, out=None)) == 2
        assert "invalid" in capsys.readouterr().out


class TestMain:
    def test_hash_pin_needs_no_configuration(self, monkeypatch, capsys):
        monkeypatch.delenv("CREDENTIAL_KEY", raising=False)
        monkeypatch.delenv("DEBUG", raising=False)
        with patch("main.getpass.getpass", return_value="2468"):
            assert main.main(["hash-pin"]) == 0
        hashed = capsys.readouterr().out.strip()
        assert verify_pin("2468", hashed)
        assert not verify_pin("1357", hashed)

    def test_missing_credential_key_is_config_error(self, monkeypatch, capsys):
        monkeypatch.delenv("CREDENTIAL_KEY", raising=False)
        monkeypatch.setenv("DEBUG", "false")
        main.get_settings.cache_clear()
        try:
            assert main.main(["status"]) == 2
        finally:
            main.get_settings.cache_clear()
        assert "Configuration error" in capsys.readouterr().out
