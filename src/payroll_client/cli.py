"""CLI interface for the payroll client"""

import json
import logging
import signal
import threading
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Any, Dict, NoReturn, Optional

import click
import requests
import yaml
from pydantic import ValidationError

from payroll_client.application.access_gate import AccessGate
from payroll_client.application.payroll_service import PayrollService
from payroll_client.application.session import SessionController
from payroll_client.domain.models.access import RedirectReason, RedirectTo
from payroll_client.infrastructure.auth.token_manager import (
    InMemoryCredentialStore,
    JsonFileCredentialStore,
    TokenManager,
)
from payroll_client.infrastructure.config.config_manager import ConfigManager, ConfigurationError
from payroll_client.infrastructure.errors import (
    AccessDeniedError,
    RequestCancelledError,
    get_error_message,
)
from payroll_client.infrastructure.http_client import ApiClient
from payroll_client.infrastructure.retry import RequestExecutor, retry_policy_from_config
from payroll_client.infrastructure.settings.store import SettingsStore, create_settings_store

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Setup logging configuration"""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        force=True,
    )
    logging.getLogger().setLevel(level)


def _die(message: str, verbose: bool = False, exc: Optional[Exception] = None) -> NoReturn:
    """Exit with a user-friendly error message"""
    if exc is not None:
        logger.error(message, exc_info=verbose)
    else:
        logger.error(message)
    raise click.ClickException(message)


def _echo_retry(attempt: int, max_retries: int, delay: float, cause: BaseException) -> None:
    click.echo(
        f"Connection issue detected. Retrying ({attempt}/{max_retries}) in {delay:.1f}s...",
        err=True,
    )


def _echo_json(data: Any) -> None:
    click.echo(json.dumps(data, indent=2, default=str))


@dataclass
class ClientContext:
    """Wired collaborators for one CLI invocation"""

    config_manager: ConfigManager
    token_manager: TokenManager
    api_client: ApiClient
    session: SessionController
    gate: AccessGate
    service: PayrollService
    cancel_event: threading.Event


def build_context(config_manager: ConfigManager) -> ClientContext:
    """Create every collaborator from configuration

    Args:
        config_manager: Configuration manager

    Returns:
        ClientContext
    """
    api_config = config_manager.get_api_config()
    auth_config = config_manager.get_auth_config()

    if auth_config.credentials_file:
        store = JsonFileCredentialStore(auth_config.credentials_file)
    else:
        store = InMemoryCredentialStore()
    token_manager = TokenManager(store)

    executor = RequestExecutor(retry_policy_from_config(config_manager.get_retry_config()))
    api_client = ApiClient(
        api_config.base_url,
        token_manager=token_manager,
        executor=executor,
        timeout=api_config.timeout,
    )
    session = SessionController(api_client, token_manager, login_path=auth_config.login_path)
    gate = AccessGate(
        token_manager,
        login_path=auth_config.login_path,
        unauthorized_path=auth_config.unauthorized_path,
    )
    cancel_event = threading.Event()
    service = PayrollService(
        api_client, gate, on_retry_scheduled=_echo_retry, cancel_event=cancel_event
    )
    return ClientContext(
        config_manager=config_manager,
        token_manager=token_manager,
        api_client=api_client,
        session=session,
        gate=gate,
        service=service,
        cancel_event=cancel_event,
    )


def _redirect_message(decision: RedirectTo) -> str:
    if decision.reason == RedirectReason.UNAUTHENTICATED:
        return f"Not logged in. Run 'payroll-client login' first (redirect: {decision.path})"
    if decision.reason == RedirectReason.EXPIRED:
        return f"Your session has expired. Please log in again (redirect: {decision.path})"
    return f"You don't have permission to access this page (redirect: {decision.path})"


def _get_context(ctx: click.Context) -> ClientContext:
    if "client" not in ctx.obj:
        try:
            config_manager = ConfigManager(config_path=ctx.obj.get("config_path"))
        except ConfigurationError as e:
            _die(str(e))
        ctx.obj["client"] = build_context(config_manager)
    return ctx.obj["client"]


def _interrupt_handler(cancel_event: threading.Event):
    """SIGINT handler: the first Ctrl+C cancels pending retries, the second interrupts"""

    def handler(signum, frame):
        if cancel_event.is_set():
            raise KeyboardInterrupt
        logger.info("Interrupt received, cancelling request")
        cancel_event.set()

    return handler


def _run(ctx: click.Context, action):
    """Run a command body, turning client failures into CLI errors"""
    verbose = ctx.obj.get("verbose", False)
    client = _get_context(ctx)
    previous_handler = None
    if threading.current_thread() is threading.main_thread():
        previous_handler = signal.signal(signal.SIGINT, _interrupt_handler(client.cancel_event))
    try:
        return action(client)
    except click.ClickException:
        raise
    except AccessDeniedError as e:
        _die(_redirect_message(e.decision), verbose=verbose, exc=e)
    except RequestCancelledError:
        raise click.Abort()
    except requests.RequestException as e:
        message = get_error_message(e)
        redirect = client.session.consume_redirect()
        if redirect:
            message = f"{message} (redirect: {redirect})"
        _die(message, verbose=verbose, exc=e)
    except ValidationError as e:
        _die(f"Invalid value: {e}", verbose=verbose, exc=e)
    except Exception as e:
        _die(f"Fatal error: {e}", verbose=verbose, exc=e)
    finally:
        if previous_handler is not None:
            signal.signal(signal.SIGINT, previous_handler)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.option(
    "--config",
    type=click.Path(exists=True, path_type=Path),
    help="Path to .payroll-client.yml config file",
)
@click.pass_context
def cli(ctx, verbose: bool, config: Path):
    """Payroll client - payroll management from the command line"""
    ctx.ensure_object(dict)
    setup_logging(verbose)
    ctx.obj["config_path"] = config
    ctx.obj["verbose"] = verbose


@cli.command()
@click.argument("email", type=str)
@click.option("--password", prompt=True, hide_input=True, help="Account password")
@click.pass_context
def login(ctx, email: str, password: str):
    """Log in and store the session token.

    EMAIL: Account email address
    """

    def action(client: ClientContext) -> None:
        user = client.service.login(email, password)
        click.echo(f"Welcome back, {user.name or user.email}!")
        click.echo(f"Home: {client.gate.landing_path_for(user.role)}")

    _run(ctx, action)


@cli.command()
@click.pass_context
def logout(ctx):
    """Remove stored credentials"""
    _run(ctx, lambda client: client.service.logout())
    click.echo("Logged out.")


@cli.command()
@click.pass_context
def whoami(ctx):
    """Show the current user and session state"""

    def action(client: ClientContext) -> None:
        state = client.gate.read_auth_state()
        decision = client.gate.check()
        if isinstance(decision, RedirectTo):
            click.echo(_redirect_message(decision))
            return
        user = client.token_manager.get_user()
        click.echo(f"Logged in as {user.name} <{user.email}>" if user else "Logged in")
        click.echo(f"Role: {state.role or 'unknown'}")
        click.echo(f"Home: {client.gate.landing_path_for(state.role)}")

    _run(ctx, action)


@cli.command()
@click.pass_context
def payslips(ctx):
    """Show your payroll history (employees)"""
    _run(ctx, lambda client: _echo_json(client.service.my_payroll()))


@cli.command()
@click.pass_context
def employees(ctx):
    """List employees (admin)"""

    def action(client: ClientContext) -> None:
        rows = client.service.list_employees()
        if not rows:
            click.echo("No employees found.")
            return
        for row in rows:
            click.echo(
                f"{row.get('id', '-')}\t{row.get('name', '-')}\t"
                f"{row.get('email', '-')}\tnet={row.get('netSalary', '-')}"
            )
        click.echo(f"\n{len(rows)} employees")

    _run(ctx, action)


@cli.command()
@click.argument("employee_id", type=str)
@click.pass_context
def history(ctx, employee_id: str):
    """Show payroll history for an employee (admin)

    EMPLOYEE_ID: Employee record ID
    """
    _run(ctx, lambda client: _echo_json(client.service.employee_payroll(employee_id)))


@cli.command("run-payroll")
@click.option("--month", type=click.IntRange(1, 12), required=True, help="Month (1-12)")
@click.option("--year", type=click.IntRange(2000, 2100), required=True, help="Year")
@click.option("--employee", "employee_id", type=str, help="Run for a single employee only")
@click.pass_context
def run_payroll(ctx, month: int, year: int, employee_id: Optional[str]):
    """Process payroll for a month (admin)"""

    def action(client: ClientContext) -> None:
        if employee_id:
            result = client.service.run_individual_payroll(employee_id, month, year)
        else:
            result = client.service.run_payroll(month, year)
        _echo_json(result)
        click.echo("\nPayroll run completed!")

    _run(ctx, action)


@cli.command()
@click.option("--year", type=int, help="Report year (default: current year)")
@click.pass_context
def dashboard(ctx, year: Optional[int]):
    """Show dashboard statistics and the monthly report (admin)"""

    def action(client: ClientContext) -> None:
        click.echo("=" * 80)
        click.echo("Dashboard Statistics")
        click.echo("=" * 80)
        _echo_json(client.service.dashboard_stats())
        report_year = year or date.today().year
        click.echo(f"\nMonthly report {report_year}")
        click.echo("-" * 80)
        _echo_json(client.service.dashboard_report(report_year))

    _run(ctx, action)


@cli.group()
def settings():
    """Show or change user settings"""
    pass


def _settings_store(client: ClientContext) -> SettingsStore:
    return create_settings_store(
        client.config_manager.get_settings_config(), api_client=client.api_client
    )


def _nested(key: str, value: Any) -> Dict[str, Any]:
    result: Dict[str, Any] = {}
    node = result
    parts = key.split(".")
    for part in parts[:-1]:
        node = node.setdefault(part, {})
    node[parts[-1]] = value
    return result


@settings.command("show")
@click.pass_context
def settings_show(ctx):
    """Print current settings"""
    _run(ctx, lambda client: _echo_json(_settings_store(client).load().model_dump()))


@settings.command("set")
@click.argument("key", type=str)
@click.argument("value", type=str)
@click.pass_context
def settings_set(ctx, key: str, value: str):
    """Change one setting, e.g. `settings set notifications.email false`

    KEY: Setting name (dot notation for nested values)
    VALUE: New value (YAML scalar)
    """

    def action(client: ClientContext) -> None:
        updated = _settings_store(client).save(_nested(key, yaml.safe_load(value)))
        _echo_json(updated.model_dump())

    _run(ctx, action)


def main():
    """Main entry point"""
    cli(obj={})


if __name__ == "__main__":
    main()
