"""Rich rendering for CLI output."""

from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from ..models.config import ConnectionProfile, MigrationConfig, Provenance
from ..models.provisioning import DataDirVersionRecord
from ..models.replication import Dialect, ReplicationIdentity
from ..models.results import MigrationSummary
from ..security.config_store import EncryptedConfigStore
from ..utils.helpers import format_duration

PREVIEW_LIMIT = 5


def preview_database_names(databases: Sequence[str], limit: int = PREVIEW_LIMIT) -> List[str]:
    """First ``limit`` names, plus an ``... and N more`` line when truncated."""
    lines = list(databases[:limit])
    remaining = len(databases) - limit
    if remaining > 0:
        lines.append(f"... and {remaining} more")
    return lines


def _describe_connection(profile: ConnectionProfile, provenance: Optional[Provenance]) -> str:
    text = profile.display_name
    if provenance is not None:
        text += f" ({provenance.label})"
    return text


def render_migration_plan(
    console: Console,
    config: MigrationConfig,
    databases: Sequence[str],
    source_provenance: Optional[Provenance] = None,
    target_provenance: Optional[Provenance] = None,
) -> None:
    """Print what a batch is about to do, ahead of the confirmation prompt."""
    text = Text()
    text.append(f"Databases to migrate: {len(databases)}\n", style="bold")
    for line in preview_database_names(databases):
        text.append(f"  • {line}\n", style="cyan")
    text.append("\nSource: ", style="bold")
    text.append(_describe_connection(config.source, source_provenance) + "\n")
    text.append("Target: ", style="bold")
    text.append(_describe_connection(config.target, target_provenance) + "\n")
    text.append("\nOptions:\n", style="bold")
    for option in config.enabled_options():
        text.append(f"  ✓ {option}\n", style="green")

    console.print(Panel(text, title="Migration Plan", border_style="blue", padding=(1, 2)))


def render_summary(console: Console, summary: MigrationSummary) -> None:
    table = Table(title="Migration Summary")
    table.add_column("Database", style="cyan")
    table.add_column("Target", style="cyan")
    table.add_column("Status")
    table.add_column("Duration", justify="right")
    table.add_column("Details", style="dim")

    for result in summary.results:
        status = "[green]✓ success[/green]" if result.success else "[red]✗ failed[/red]"
        details = result.error or result.backup_artifact_path or ""
        if result.warnings:
            details = "\n".join([details] + [f"⚠ {w}" for w in result.warnings]).strip()
        table.add_row(
            result.source_database,
            result.target_database,
            status,
            format_duration(result.duration),
            details,
        )

    console.print(table)
    style = "green" if summary.is_successful else "red"
    console.print(
        f"[{style}]{summary.success_count} succeeded, {summary.error_count} failed "
        f"of {len(summary.databases)} database(s) in {format_duration(summary.total_duration)}[/{style}]"
    )


def replication_identity_as_dict(identity: ReplicationIdentity) -> Dict[str, Any]:
    data = identity.model_dump(mode="json")
    data["warnings"] = list(identity.warnings)
    return data


def render_replication_identity(console: Console, identity: ReplicationIdentity, title: str) -> None:
    table = Table(title=title, show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")

    table.add_row("Dialect", identity.dialect.value)
    table.add_row("Server version", identity.server_version or "-")
    table.add_row("Server identity", identity.server_identity or "-")
    table.add_row("GTID enabled", "yes" if identity.gtid_enabled else "no")
    table.add_row("Executed GTID set", identity.executed_set or "-")
    table.add_row("Purged GTID set", identity.purged_set or "-")
    table.add_row("Binlog file", identity.binlog_file or "-")
    table.add_row("Binlog position", str(identity.binlog_position) if identity.binlog_position is not None else "-")
    if identity.dialect == Dialect.MARIADB:
        table.add_row("GTID at binlog position", identity.gtid_position or "-")
    table.add_row("Captured at", identity.captured_at.strftime("%Y-%m-%d %H:%M:%S"))
    console.print(table)

    for warning in identity.warnings:
        console.print(f"[yellow]⚠ {warning}[/yellow]")


def render_datadir_record(console: Console, record: DataDirVersionRecord,
                          backup_path: Optional[Path] = None) -> None:
    table = Table(title="Data Directory Check", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("Data directory", record.data_dir)
    table.add_row("Recorded version", record.existing_version or "(no marker)")
    table.add_row("Incoming version", record.target_version)
    if record.is_downgrade:
        table.add_row("Result", "[red]downgrade conflict[/red]")
    else:
        table.add_row("Result", "[green]compatible[/green]")
    if backup_path is not None:
        table.add_row("Old data moved to", str(backup_path))
    console.print(table)


def render_profiles(console: Console, profiles: Sequence[Path]) -> None:
    if not profiles:
        console.print("[yellow]No encrypted profiles found[/yellow]")
        return
    table = Table(title="Encrypted Profiles")
    table.add_column("#", style="cyan", width=4)
    table.add_column("Name", style="green")
    table.add_column("Path", style="dim")
    for number, path in enumerate(profiles, 1):
        table.add_row(str(number), EncryptedConfigStore.profile_name(path), str(path))
    console.print(table)
