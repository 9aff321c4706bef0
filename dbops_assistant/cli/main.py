"""
Main CLI entry point for the DB Ops Assistant.

This module provides the command-line interface using Click with Rich
formatting: batch migration, replication status, data directory checks
and encrypted profile management.
"""

import functools
import json
import sys
from pathlib import Path
from typing import Callable, Optional

import click
from rich.console import Console
from rich.prompt import Prompt

from dbops_assistant import __version__
from dbops_assistant.backup.engine import BackupOptions
from dbops_assistant.backup.mysqldump import MysqldumpBackupEngine
from dbops_assistant.backup.restore import MysqlRestoreEngine
from dbops_assistant.cli.display import (
    render_datadir_record,
    render_migration_plan,
    render_profiles,
    render_replication_identity,
    render_summary,
    replication_identity_as_dict,
)
from dbops_assistant.cli.selector import ConsoleSelector
from dbops_assistant.core.selector import AutoConfirmSelector, Selector
from dbops_assistant.config.database_list import normalize_database_names, read_database_list
from dbops_assistant.config.resolver import ConfigResolver, ConnectionFlags
from dbops_assistant.config.settings import load_settings
from dbops_assistant.core.exceptions import (
    BatchMigrationError,
    ConfigurationError,
    DbOpsError,
    SafetyConflictError,
)
from dbops_assistant.database.inventory import list_databases
from dbops_assistant.database.replication import ConsistencyCapture
from dbops_assistant.models.config import ConnectionProfile, MigrationConfig
from dbops_assistant.models.settings import AppSettings
from dbops_assistant.orchestrator.orchestrator import MigrationOrchestrator
from dbops_assistant.provisioning.guard import DataDirSafetyGuard
from dbops_assistant.provisioning.services import DataDirInitializer, ServiceManager
from dbops_assistant.security.config_store import EncryptedConfigStore
from dbops_assistant.security.encryption import passphrase_from_env
from dbops_assistant.system.commands import CommandRunner
from dbops_assistant.utils.logging import setup_logging

console = Console()


def _fail(message: str):
    console.print(f"[red]Error: {message}[/red]")
    sys.exit(1)


def connection_options(prefix: str, envvar_prefix: Optional[str] = None):
    """Add ``--<prefix>-config/host/port/user/password`` options to a command."""
    def option_name(field: str) -> str:
        return f"--{prefix}-{field}" if prefix else f"--{field}"

    def envvar(field: str) -> Optional[str]:
        return f"{envvar_prefix}_{field.upper()}" if envvar_prefix else None

    role = prefix or "server"
    options = [
        click.option(option_name("config"), envvar=envvar("config"),
                     help=f"Encrypted {role} configuration file (.cnf.enc)"),
        click.option(option_name("host"), envvar=envvar("host"), help=f"{role.title()} host"),
        click.option(option_name("port"), envvar=envvar("port"), type=int, help=f"{role.title()} port"),
        click.option(option_name("user"), envvar=envvar("user"), help=f"{role.title()} user"),
        click.option(option_name("password"), envvar=envvar("password"), help=f"{role.title()} password"),
    ]

    def decorator(func):
        for option in reversed(options):
            func = option(func)
        return func
    return decorator


def _flags(kwargs: dict, prefix: str) -> ConnectionFlags:
    key = f"{prefix}_" if prefix else ""
    return ConnectionFlags(
        config=kwargs.get(f"{key}config"),
        host=kwargs.get(f"{key}host"),
        port=kwargs.get(f"{key}port"),
        user=kwargs.get(f"{key}user"),
        password=kwargs.get(f"{key}password"),
    )


def make_selector(auto_confirm: bool) -> Selector:
    return AutoConfirmSelector() if auto_confirm else ConsoleSelector(console)


def make_passphrase_provider(auto_confirm: bool) -> Callable[[str], Optional[str]]:
    """Passphrase from DBOPS_ENCRYPTION_PASSWORD, else a prompt unless running with --yes."""
    def provide(subject: str) -> Optional[str]:
        passphrase = passphrase_from_env()
        if passphrase or auto_confirm:
            return passphrase
        return Prompt.ask(f"[cyan]Encryption password for {subject}[/cyan]", password=True, console=console)
    return provide


def make_resolver(settings: AppSettings, selector: Selector, auto_confirm: bool) -> ConfigResolver:
    return ConfigResolver(
        store=EncryptedConfigStore(),
        selector=selector,
        profile_dir=settings.profile_dir,
        passphrase_provider=make_passphrase_provider(auto_confirm),
    )


def build_orchestrator(settings: AppSettings, passphrase: Optional[str],
                       backup_dir: Optional[str] = None) -> MigrationOrchestrator:
    runner = CommandRunner(default_timeout=settings.command_timeout)
    backup_engine = MysqldumpBackupEngine(
        runner=runner,
        passphrase=passphrase,
        mysqldump_args=settings.mysqldump_args,
        timeout=settings.command_timeout,
    )
    restore_engine = MysqlRestoreEngine(
        runner=runner,
        passphrase=passphrase,
        timeout=settings.command_timeout,
    )
    options = BackupOptions(
        output_dir=backup_dir or settings.backup_dir,
        compression=settings.compression,
        encrypt=settings.encrypt_backups,
        retention_days=settings.retention_days,
    )
    return MigrationOrchestrator(backup_engine, restore_engine, options)


def build_capture() -> ConsistencyCapture:
    return ConsistencyCapture()


def build_guard(settings: AppSettings, selector: Selector) -> DataDirSafetyGuard:
    runner = CommandRunner(default_timeout=settings.command_timeout)
    return DataDirSafetyGuard(
        service_manager=ServiceManager(runner, settings.service_names, settings.service_timeout),
        initializer=DataDirInitializer(runner, settings.command_timeout),
        selector=selector,
    )


def handle_errors(func):
    """Map DbOpsError to one red error line and exit status 1."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except DbOpsError as e:
            _fail(str(e))
        except KeyboardInterrupt:
            console.print("\n[yellow]Operation cancelled by user[/yellow]")
            sys.exit(1)
    return wrapper


@click.group(invoke_without_command=True)
@click.option('--version', is_flag=True, help='Show version information')
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose output')
@click.option('--settings', 'settings_path', type=click.Path(dir_okay=False),
              help='Settings file (default: $DBOPS_SETTINGS or ~/.dbops-assistant/config.yaml)')
@click.pass_context
def main(ctx: click.Context, version: bool, verbose: bool, settings_path: Optional[str]):
    """
    DB Ops Assistant

    Moves databases between MySQL/MariaDB servers, reports replication
    positions and guards data directories against version downgrades.
    """
    ctx.ensure_object(dict)
    ctx.obj['verbose'] = verbose

    if version:
        console.print(f"DB Ops Assistant version {__version__}")
        sys.exit(0)

    try:
        settings = load_settings(settings_path)
    except ConfigurationError as e:
        _fail(str(e))
    ctx.obj['settings'] = settings

    setup_logging(
        level="DEBUG" if verbose else settings.log_level,
        log_file=settings.log_file,
    )

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@main.group()
def migrate():
    """Move databases between servers."""


@migrate.command()
@connection_options("source", "SOURCE")
@connection_options("target", "TARGET")
@click.option('--db-list', type=click.Path(exists=True, dir_okay=False),
              help='File with one database name per line')
@click.option('--migrate-users/--no-migrate-users', default=True, help='Migrate users and grants')
@click.option('--migrate-data/--no-migrate-data', default=True, help='Migrate table data')
@click.option('--migrate-structure/--no-migrate-structure', default=True, help='Migrate schema objects')
@click.option('--verify-data/--no-verify-data', default=True, help='Verify backup checksums before restore')
@click.option('--backup-target/--no-backup-target', default=True, help='Back up target databases first')
@click.option('--drop-target/--no-drop-target', default=True, help='Drop target databases before restore')
@click.option('--create-target/--no-create-target', default=True, help='Create target databases before restore')
@click.option('--strict-target-backup', is_flag=True, help='Fail a database when its target backup fails')
@click.option('--backup-dir', type=click.Path(file_okay=False), help='Backup output directory')
@click.option('--yes', '-y', is_flag=True, help='Skip prompts and confirm automatically')
@click.pass_context
@handle_errors
def selection(ctx: click.Context, db_list: Optional[str], migrate_users: bool, migrate_data: bool,
              migrate_structure: bool, verify_data: bool, backup_target: bool, drop_target: bool,
              create_target: bool, strict_target_backup: bool, backup_dir: Optional[str],
              yes: bool, **connection):
    """Migrate selected databases from a source server to a target server."""
    settings: AppSettings = ctx.obj['settings']
    selector = make_selector(yes)
    resolver = make_resolver(settings, selector, yes)

    source, source_provenance = resolver.resolve(_flags(connection, "source"), "source")
    target, target_provenance = resolver.resolve(_flags(connection, "target"), "target")

    config = MigrationConfig(
        source=source,
        target=target,
        migrate_users=migrate_users,
        migrate_data=migrate_data,
        migrate_structure=migrate_structure,
        verify_data=verify_data,
        backup_target=backup_target,
        drop_target=drop_target,
        create_target=create_target,
        strict_target_backup=strict_target_backup,
    )
    MigrationOrchestrator.validate_config(config)

    if db_list:
        databases = read_database_list(db_list)
    elif yes:
        raise ConfigurationError("--db-list is required when running with --yes")
    else:
        available = list_databases(source)
        if not available:
            raise ConfigurationError(f"No user databases found on {source.address}")
        chosen = selector.select_many("Databases on source server", available)
        databases = [available[index] for index in chosen]
    databases = normalize_database_names(databases)

    render_migration_plan(console, config, databases, source_provenance, target_provenance)
    if not selector.confirm("Proceed with migration?", default=False):
        console.print("[yellow]Migration cancelled[/yellow]")
        return

    passphrase = None
    if settings.encrypt_backups:
        passphrase = make_passphrase_provider(yes)("backup encryption")
        if not passphrase:
            raise ConfigurationError(
                "Backup encryption is enabled but DBOPS_ENCRYPTION_PASSWORD is not set"
            )

    orchestrator = build_orchestrator(settings, passphrase, backup_dir)

    def show_progress(event, data):
        if event == "item_started":
            console.print(f"[cyan][{data['position']}/{data['total']}] Migrating {data['database']}...[/cyan]")

    orchestrator.add_progress_callback(show_progress)

    try:
        summary = orchestrator.migrate_batch(config, databases)
    except BatchMigrationError as e:
        render_summary(console, e.summary)
        sys.exit(1)

    render_summary(console, summary)


@main.group()
def replication():
    """Replication position reporting."""


@replication.command()
@connection_options("")
@click.option('--format', '-f', 'output_format', type=click.Choice(['table', 'json']), default='table',
              help='Output format')
@click.option('--yes', '-y', is_flag=True, help='Pick the first discovered profile without prompting')
@click.pass_context
@handle_errors
def status(ctx: click.Context, output_format: str, yes: bool, **connection):
    """Show GTID and binlog position of a server."""
    settings: AppSettings = ctx.obj['settings']
    resolver = make_resolver(settings, make_selector(yes), yes)
    profile, _ = resolver.resolve(_flags(connection, ""), "server")

    identity = build_capture().get_replication_identity(profile)

    if output_format == 'json':
        click.echo(json.dumps(replication_identity_as_dict(identity), indent=2))
    else:
        render_replication_identity(console, identity, f"Replication Status: {profile.address}")


@main.group()
def datadir():
    """Data directory safety checks."""


@datadir.command()
@click.option('--data-dir', type=click.Path(file_okay=False), help='Data directory (default from settings)')
@click.option('--target-version', required=True, help='Version of the server about to be started')
@click.option('--check-only', is_flag=True, help='Report a conflict without remediating')
@click.option('--yes', '-y', is_flag=True, help='Remediate a conflict without prompting')
@click.pass_context
@handle_errors
def check(ctx: click.Context, data_dir: Optional[str], target_version: str, check_only: bool, yes: bool):
    """Check that a data directory can be used by an incoming server version."""
    settings: AppSettings = ctx.obj['settings']
    data_dir = data_dir or settings.data_dir
    guard = build_guard(settings, make_selector(yes))

    if check_only:
        conflict, record = guard.check_compatibility(data_dir, target_version)
        render_datadir_record(console, record)
        if conflict:
            sys.exit(1)
        return

    try:
        record, backup_path = guard.ensure_compatible(data_dir, target_version, auto_confirm=yes)
    except SafetyConflictError as e:
        if e.record is not None:
            render_datadir_record(console, e.record)
        raise

    render_datadir_record(console, record, backup_path)
    if backup_path is not None:
        console.print(f"[green]Data directory reinitialized; previous data kept at {backup_path}[/green]")


@main.group()
def profile():
    """Encrypted connection profiles."""


@profile.command()
@click.option('--name', required=True, help='Profile name (file is <name>.cnf.enc)')
@click.option('--host', help='Server host')
@click.option('--port', type=int, help='Server port')
@click.option('--user', help='Server user')
@click.option('--password', help='Server password')
@click.option('--output-dir', type=click.Path(file_okay=False), help='Profile directory (default from settings)')
@click.option('--yes', '-y', is_flag=True, help='Use defaults instead of prompting for missing values')
@click.pass_context
@handle_errors
def generate(ctx: click.Context, name: str, host: Optional[str], port: Optional[int], user: Optional[str],
             password: Optional[str], output_dir: Optional[str], yes: bool):
    """Create an encrypted connection profile."""
    settings: AppSettings = ctx.obj['settings']

    if not yes:
        host = host or Prompt.ask("[cyan]Host[/cyan]", default="localhost", console=console)
        if port is None:
            port = int(Prompt.ask("[cyan]Port[/cyan]", default="3306", console=console))
        user = user or Prompt.ask("[cyan]User[/cyan]", default="root", console=console)
        if password is None:
            password = Prompt.ask("[cyan]Password[/cyan]", password=True, default="", console=console)

    try:
        connection = ConnectionProfile(
            host=host or "localhost",
            port=port if port is not None else 3306,
            user=user or "root",
            password=password or "",
        )
    except ValueError as e:
        raise ConfigurationError(f"Invalid profile values: {e}")

    passphrase = passphrase_from_env()
    if not passphrase:
        if yes:
            raise ConfigurationError("DBOPS_ENCRYPTION_PASSWORD must be set when running with --yes")
        passphrase = Prompt.ask("[cyan]Encryption password[/cyan]", password=True, console=console)
        confirmation = Prompt.ask("[cyan]Repeat encryption password[/cyan]", password=True, console=console)
        if passphrase != confirmation:
            raise ConfigurationError("Encryption passwords do not match")
    if not passphrase:
        raise ConfigurationError("Encryption password must not be empty")

    directory = Path(output_dir or settings.profile_dir).expanduser()
    path = EncryptedConfigStore().save(directory / name, connection, passphrase)
    console.print(f"[green]Profile saved: {path}[/green]")


@profile.command(name="list")
@click.option('--profile-dir', type=click.Path(file_okay=False), help='Profile directory (default from settings)')
@click.pass_context
def list_profiles(ctx: click.Context, profile_dir: Optional[str]):
    """List encrypted connection profiles."""
    settings: AppSettings = ctx.obj['settings']
    render_profiles(console, EncryptedConfigStore().discover(profile_dir or settings.profile_dir))


if __name__ == '__main__':
    main()
