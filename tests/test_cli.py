"""Tests for CLI interface"""

from __future__ import annotations

import base64
import json
import logging
import signal
import threading
from unittest.mock import patch

import click
import pytest
import requests
import yaml
from click.testing import CliRunner

from payroll_client.cli import (
    _die,
    _interrupt_handler,
    _nested,
    build_context,
    cli,
    main,
    setup_logging,
)
from payroll_client.infrastructure.auth.token_manager import JsonFileCredentialStore, TokenManager
from payroll_client.infrastructure.config.config_manager import ConfigManager

# 2096-10-02, far enough ahead for a real clock
FAR_FUTURE = 4_000_000_000


def make_token(exp: int) -> str:
    body = base64.urlsafe_b64encode(json.dumps({"exp": exp}).encode()).decode("ascii").rstrip("=")
    return f"header.{body}.signature"


def _make_response(status_code: int, payload: dict | None = None) -> requests.Response:
    r = requests.Response()
    r.status_code = status_code
    r.url = "http://payroll.test/api"
    r._content = json.dumps(payload or {}).encode("utf-8")  # type: ignore[attr-defined]
    return r


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    """Config pointing credentials and settings at tmp_path"""
    for name in ConfigManager.ENV_OVERRIDES:
        monkeypatch.delenv(name, raising=False)
    path = tmp_path / ".payroll-client.yml"
    path.write_text(
        yaml.dump(
            {
                "api": {"base_url": "http://payroll.test/api"},
                "retry": {"base_delay": 0.0, "max_delay": 0.01},
                "auth": {"credentials_file": str(tmp_path / "credentials.json")},
                "settings": {"backend": "file", "settings_file": str(tmp_path / "settings.json")},
            }
        ),
        encoding="utf-8",
    )
    return path


def _login_as(config_file, role: str, exp: int = FAR_FUTURE) -> TokenManager:
    manager = TokenManager(JsonFileCredentialStore(config_file.parent / "credentials.json"))
    manager.set_auth(
        make_token(exp), {"id": "u1", "name": "Asha", "email": "asha@example.com", "role": role}
    )
    return manager


def _invoke(config_file, *args):
    runner = CliRunner()
    return runner.invoke(cli, ["--config", str(config_file), *args], obj={})


class TestSetupLogging:
    """Tests for setup_logging function"""

    def test_setup_logging_info_level(self):
        """Test that logging is set to INFO level by default"""
        setup_logging(verbose=False)
        assert logging.getLogger().level == logging.INFO

    def test_setup_logging_debug_level(self):
        """Test that logging is set to DEBUG level when verbose"""
        setup_logging(verbose=True)
        assert logging.getLogger().level == logging.DEBUG


class TestDie:
    """Tests for _die function"""

    def test_die_without_exception(self):
        """Test _die without exception"""
        with pytest.raises(click.ClickException, match="Test error"):
            _die("Test error", verbose=False)

    def test_die_with_exception_verbose(self):
        """Test _die with exception in verbose mode"""
        exc = ValueError("Test exception")
        with pytest.raises(click.ClickException, match="Test error"):
            _die("Test error", verbose=True, exc=exc)


def test_interrupt_handler_sets_event_then_interrupts():
    event = threading.Event()
    handler = _interrupt_handler(event)

    handler(signal.SIGINT, None)
    assert event.is_set()

    with pytest.raises(KeyboardInterrupt):
        handler(signal.SIGINT, None)


def test_nested_key():
    assert _nested("currency", "USD") == {"currency": "USD"}
    assert _nested("notifications.email", False) == {"notifications": {"email": False}}


def test_build_context_wires_configured_store(config_file):
    context = build_context(ConfigManager(config_path=config_file))
    assert context.api_client.base_url == "http://payroll.test/api"
    assert context.gate.login_path == "/login"
    assert context.api_client.executor.policy.max_retries == 3


class TestLoginCommands:
    """Tests for login, logout and whoami"""

    def test_login_success(self, config_file):
        response = _make_response(
            200,
            {
                "success": True,
                "token": make_token(FAR_FUTURE),
                "user": {"id": "u9", "name": "Ravi", "email": "ravi@example.com", "role": "employee"},
            },
        )
        with patch.object(requests.Session, "request", return_value=response) as mock_request:
            result = _invoke(config_file, "login", "ravi@example.com", "--password", "secret")

        assert result.exit_code == 0, result.output
        assert "Welcome back, Ravi!" in result.output
        assert "/employee/dashboard" in result.output
        assert mock_request.call_count == 1
        stored = json.loads((config_file.parent / "credentials.json").read_text(encoding="utf-8"))
        assert "token" in stored

    def test_login_rejected(self, config_file):
        response = _make_response(401, {"success": False, "message": "Invalid credentials"})
        with patch.object(requests.Session, "request", return_value=response):
            result = _invoke(config_file, "login", "ravi@example.com", "--password", "wrong")

        assert result.exit_code == 1
        assert "Invalid credentials" in result.output
        assert "redirect" not in result.output

    def test_whoami_logged_out(self, config_file):
        result = _invoke(config_file, "whoami")
        assert result.exit_code == 0
        assert "Not logged in" in result.output

    def test_whoami_logged_in(self, config_file):
        _login_as(config_file, "admin")
        result = _invoke(config_file, "whoami")
        assert result.exit_code == 0
        assert "Asha <asha@example.com>" in result.output
        assert "Role: admin" in result.output
        assert "/admin/dashboard" in result.output

    def test_whoami_expired(self, config_file):
        _login_as(config_file, "admin", exp=1_000)
        result = _invoke(config_file, "whoami")
        assert "expired" in result.output

    def test_logout(self, config_file):
        _login_as(config_file, "employee")
        result = _invoke(config_file, "logout")
        assert result.exit_code == 0
        assert "Logged out." in result.output
        assert JsonFileCredentialStore(config_file.parent / "credentials.json").get("token") is None


class TestProtectedCommands:
    """Tests for commands behind the access gate"""

    def test_payslips_requires_login(self, config_file):
        with patch.object(requests.Session, "request") as mock_request:
            result = _invoke(config_file, "payslips")
        assert result.exit_code == 1
        assert "Not logged in" in result.output
        mock_request.assert_not_called()

    def test_admin_cannot_view_payslips(self, config_file):
        _login_as(config_file, "admin")
        with patch.object(requests.Session, "request") as mock_request:
            result = _invoke(config_file, "payslips")
        assert result.exit_code == 1
        assert "/unauthorized" in result.output
        mock_request.assert_not_called()

    def test_payslips_for_employee(self, config_file):
        _login_as(config_file, "employee")
        response = _make_response(200, {"success": True, "data": {"payrollRecords": [{"month": 1}]}})
        with patch.object(requests.Session, "request", return_value=response):
            result = _invoke(config_file, "payslips")
        assert result.exit_code == 0, result.output
        assert '"payrollRecords"' in result.output
        assert '"month": 1' in result.output

    def test_rejected_session_clears_credentials(self, config_file):
        _login_as(config_file, "employee")
        with patch.object(requests.Session, "request", return_value=_make_response(401)):
            result = _invoke(config_file, "payslips")

        assert result.exit_code == 1
        assert "Your session has expired" in result.output
        assert "(redirect: /login)" in result.output
        assert JsonFileCredentialStore(config_file.parent / "credentials.json").get("token") is None

    def test_employees_retries_transient_failure(self, config_file):
        _login_as(config_file, "admin")
        responses = [
            _make_response(503),
            _make_response(200, {"success": True, "employees": [{"id": "e1", "name": "Mei"}]}),
        ]
        with patch.object(requests.Session, "request", side_effect=responses) as mock_request:
            result = _invoke(config_file, "employees")

        assert result.exit_code == 0, result.output
        assert "Retrying (1/3)" in result.output
        assert "Mei" in result.output
        assert "1 employees" in result.output
        assert mock_request.call_count == 2

    def test_run_payroll_is_not_retried(self, config_file):
        _login_as(config_file, "admin")
        with patch.object(
            requests.Session, "request", return_value=_make_response(503)
        ) as mock_request:
            result = _invoke(config_file, "run-payroll", "--month", "3", "--year", "2024")

        assert result.exit_code == 1
        assert "server encountered an error" in result.output
        assert mock_request.call_count == 1

    def test_run_payroll_success(self, config_file):
        _login_as(config_file, "admin")
        response = _make_response(200, {"success": True, "data": {"processed": 12}})
        with patch.object(requests.Session, "request", return_value=response) as mock_request:
            result = _invoke(config_file, "run-payroll", "--month", "3", "--year", "2024")

        assert result.exit_code == 0, result.output
        assert "Payroll run completed!" in result.output
        assert mock_request.call_args.args[0] == "POST"
        assert mock_request.call_args.kwargs["json"] == {"month": 3, "year": 2024}

    def test_run_payroll_month_out_of_range(self, config_file):
        result = _invoke(config_file, "run-payroll", "--month", "13", "--year", "2024")
        assert result.exit_code == 2

    def test_interrupt_cancels_pending_retries(self, config_file):
        _login_as(config_file, "admin")
        original_handler = signal.getsignal(signal.SIGINT)

        def interrupted_request(*args, **kwargs):
            signal.getsignal(signal.SIGINT)(signal.SIGINT, None)
            raise requests.ConnectionError("reset by peer")

        with patch.object(
            requests.Session, "request", side_effect=interrupted_request
        ) as mock_request:
            result = _invoke(config_file, "employees")

        assert result.exit_code == 1
        assert "Aborted!" in result.output
        assert "Retrying" not in result.output
        assert mock_request.call_count == 1
        assert signal.getsignal(signal.SIGINT) is original_handler


class TestSettingsCommands:
    """Tests for settings show/set"""

    def test_show_defaults(self, config_file):
        result = _invoke(config_file, "settings", "show")
        assert result.exit_code == 0, result.output
        assert '"currency": "INR"' in result.output

    def test_set_nested_value(self, config_file):
        result = _invoke(config_file, "settings", "set", "notifications.email", "false")
        assert result.exit_code == 0, result.output

        saved = json.loads((config_file.parent / "settings.json").read_text(encoding="utf-8"))
        assert saved["notifications"]["email"] is False
        assert saved["notifications"]["payroll"] is True

    def test_set_invalid_value(self, config_file):
        result = _invoke(config_file, "settings", "set", "currency", "RUPEES")
        assert result.exit_code == 1
        assert "Invalid value" in result.output


def test_invalid_config_file(tmp_path):
    path = tmp_path / "bad.yml"
    path.write_text(yaml.dump({"retry": {"jitter": 3}}), encoding="utf-8")
    result = CliRunner().invoke(cli, ["--config", str(path), "whoami"], obj={})
    assert result.exit_code == 1
    assert "Configuration validation failed" in result.output


class TestMain:
    """Tests for main function"""

    @patch("payroll_client.cli.cli")
    def test_main_calls_cli(self, mock_cli):
        """Test that main function calls cli"""
        main()
        mock_cli.assert_called_once_with(obj={})
