from __future__ import annotations

import logging
import os
from pathlib import Path

import typer

from hostnet.adapters.host import LocalHost
from hostnet.adapters.nmcli import NmcliBackend
from hostnet.backup.store import AGENT_PREFIX, CONNECTIONS_PREFIX, BackupStore
from hostnet.core.errors import ConfigError, HostnetError, NoBackupAvailable
from hostnet.core.logging import configure_logging
from hostnet.core.model import ValidationContext
from hostnet.core.results import RunSummary
from hostnet.core.settings import Settings, load_settings
from hostnet.deploy.agent import restart_agent, update_agent_properties
from hostnet.deploy.controller import DeploymentController
from hostnet.drift.compare import compare as compare_state
from hostnet.oracle.probe import IcmpPinger, ReachabilityOracle
from hostnet.plan.compiler import compile_plan
from hostnet.render.report_json import write_json_report
from hostnet.render.report_md import write_markdown_report
from hostnet.topology.loader import load_topology
from hostnet.topology.schema import Topology
from hostnet.utils.time import utc_now_iso
from hostnet.utils.yaml import dump_yaml
from hostnet.validators.engine import HEALTH_PHASES, VALIDATE_PHASES, run_validators

app = typer.Typer(add_completion=False, help="Provision and verify bonded, VLAN-aware host networking.")
logger = logging.getLogger(__name__)

CONFIG_OPTION = typer.Option(..., "--config", "-c", help="Topology YAML or server.conf")
SETTINGS_OPTION = typer.Option(None, "--settings", help="Runtime settings YAML")


def _settings(path: Path | None, **overrides) -> Settings:
    try:
        return load_settings(path).with_overrides(**overrides)
    except ConfigError as exc:
        typer.echo(f"ERROR: {exc}", err=True)
        raise typer.Exit(code=1) from exc


def _topology(path: Path) -> Topology:
    try:
        return load_topology(path)
    except HostnetError as exc:
        typer.echo(f"ERROR: {exc}", err=True)
        raise typer.Exit(code=1) from exc


def _require_root() -> None:
    if os.geteuid() != 0:
        typer.echo("ERROR: this command must run as root", err=True)
        raise typer.Exit(code=1)


def _backend(settings: Settings, host: LocalHost) -> NmcliBackend:
    return NmcliBackend(host, settings.connections_dir)


def _store(settings: Settings) -> BackupStore:
    return BackupStore(settings.backup_dir, settings.retention)


def _controller(settings: Settings, host: LocalHost) -> DeploymentController:
    def post_commit(topology: Topology) -> None:
        if update_agent_properties(settings.agent_properties, topology):
            restart_agent(host, settings.agent_service)

    return DeploymentController(
        backend=_backend(settings, host),
        oracle=ReachabilityOracle(IcmpPinger(host), settle_delay=settings.settle_delay),
        store=_store(settings),
        settings=settings,
        sources={CONNECTIONS_PREFIX: settings.connections_dir, AGENT_PREFIX: settings.agent_properties},
        post_commit=post_commit,
    )


def _write_reports(payload: dict, json_out: Path | None, md_out: Path | None, title: str) -> None:
    payload["generated_at"] = utc_now_iso()
    if json_out is not None:
        write_json_report(payload, json_out)
    if md_out is not None:
        write_markdown_report(payload, md_out, title=title)


def _print_console(summary: RunSummary) -> None:
    for result in summary.results:
        typer.echo(f"[{result.phase}] {result.status.value:4} {result.name} - {result.message}")
    typer.echo(f"Exit code: {summary.exit_code}")


@app.command()
def plan(
    config: Path = CONFIG_OPTION,
    settings_file: Path | None = SETTINGS_OPTION,
    verbose: bool = typer.Option(False, "--verbose"),
) -> None:
    """Print the plan a deployment would run against the current host state."""
    configure_logging(verbose)
    settings = _settings(settings_file)
    topology = _topology(config)
    backend = _backend(settings, LocalHost(settings.command_timeout))
    try:
        compiled = compile_plan(topology, backend.list_connections())
    except (HostnetError, RuntimeError) as exc:
        typer.echo(f"ERROR: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    typer.echo(dump_yaml(compiled.to_dict()))


@app.command()
def deploy(
    config: Path = CONFIG_OPTION,
    settings_file: Path | None = SETTINGS_OPTION,
    dry_run: bool = typer.Option(False, "--dry-run", help="Preview the steps without touching the host"),
    settle: float | None = typer.Option(None, "--settle", help="Seconds to wait before probing the gateway"),
    json_out: Path | None = typer.Option(None, "--json-out"),
    md_out: Path | None = typer.Option(None, "--md-out"),
    verbose: bool = typer.Option(False, "--verbose"),
) -> None:
    """Back up, apply, verify, and fall back to the rescue interface if the gateway is lost."""
    settings = _settings(settings_file, settle_delay=settle)
    configure_logging(verbose, None if dry_run else settings.log_file)
    topology = _topology(config)
    if not dry_run:
        _require_root()

    controller = _controller(settings, LocalHost(settings.command_timeout))
    try:
        result = controller.run_deployment(topology, dry_run=dry_run)
    except (HostnetError, RuntimeError) as exc:
        logger.error("Deployment aborted before any change: %s", exc)
        raise typer.Exit(code=1) from exc

    if dry_run:
        for entry in result.record:
            typer.echo(f"would run: {entry.step.describe()}")
    typer.echo(f"Deployment {result.status.value}" + (f": {result.cause}" if result.cause else ""))
    if result.undo_plan is not None and len(result.undo_plan):
        typer.echo("Completed steps can be undone with:")
        for step in result.undo_plan.steps:
            typer.echo(f"  {step.describe()}")
    _write_reports(result.to_dict(), json_out, md_out, "hostnet deployment")
    raise typer.Exit(code=result.exit_code)


@app.command()
def rollback(
    settings_file: Path | None = SETTINGS_OPTION,
    verbose: bool = typer.Option(False, "--verbose"),
) -> None:
    """Restore the NetworkManager connections from the latest snapshot."""
    settings = _settings(settings_file)
    configure_logging(verbose, settings.log_file)
    _require_root()
    controller = _controller(settings, LocalHost(settings.command_timeout))
    try:
        result = controller.rollback()
    except NoBackupAvailable as exc:
        typer.echo(f"ERROR: {exc}", err=True)
        raise typer.Exit(code=2) from exc
    except (HostnetError, RuntimeError) as exc:
        typer.echo(f"ERROR: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    typer.echo(f"Restore of {result.snapshot_id}: {'ok' if result.ok else 'failed'}")
    raise typer.Exit(code=0 if result.ok else 2)


@app.command()
def backups(
    settings_file: Path | None = SETTINGS_OPTION,
) -> None:
    """List stored snapshots, oldest first."""
    settings = _settings(settings_file)
    items = _store(settings).list_snapshots()
    if not items:
        typer.echo(f"No snapshots in {settings.backup_dir}")
        return
    for meta in items:
        typer.echo(f"{meta['id']}  {meta['created_at']}  {len(meta.get('connections', []))} connections")


@app.command()
def compare(
    config: Path = CONFIG_OPTION,
    settings_file: Path | None = SETTINGS_OPTION,
    json_out: Path | None = typer.Option(None, "--json-out"),
    verbose: bool = typer.Option(False, "--verbose"),
) -> None:
    """Diff the connections the topology needs against the ones present now."""
    configure_logging(verbose)
    settings = _settings(settings_file)
    topology = _topology(config)
    backend = _backend(settings, LocalHost(settings.command_timeout))
    try:
        report = compare_state(topology, backend.list_connections())
    except (HostnetError, RuntimeError) as exc:
        typer.echo(f"ERROR: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    for name in report.missing:
        typer.echo(f"missing     {name} ({report.expected[name]})")
    for name in report.unexpected:
        typer.echo(f"unexpected  {name} ({report.present[name]})")
    for item in report.changed:
        typer.echo(f"changed     {item['path']}: {item['expected']} -> {item['actual']}")
    typer.echo("In sync" if report.in_sync else f"{len(report.diffs)} differences")
    _write_reports(report.to_dict(), json_out, None, "hostnet compare")
    raise typer.Exit(code=report.exit_code)


def _check_command(phase_map, config: Path | None, dns: str, json_out: Path | None, md_out: Path | None, title: str) -> None:
    topology = _topology(config) if config is not None else None
    ctx = ValidationContext(host=LocalHost(), topology=topology, dns=dns)
    summary = run_validators(ctx, phase_map)
    _print_console(summary)
    _write_reports(summary.to_dict(), json_out, md_out, title)
    raise typer.Exit(code=summary.exit_code)


@app.command()
def validate(
    config: Path | None = typer.Option(None, "--config", "-c", help="Topology to validate against"),
    dns: str = typer.Option("8.8.8.8", "--dns"),
    json_out: Path | None = typer.Option(None, "--json-out"),
    md_out: Path | None = typer.Option(None, "--md-out"),
    verbose: bool = typer.Option(False, "--verbose"),
) -> None:
    """Check bonds, bridges, addressing, MTU, VLANs and connectivity."""
    configure_logging(verbose)
    _check_command(VALIDATE_PHASES, config, dns, json_out, md_out, "hostnet validation")


@app.command()
def health(
    config: Path | None = typer.Option(None, "--config", "-c"),
    dns: str = typer.Option("8.8.8.8", "--dns"),
    json_out: Path | None = typer.Option(None, "--json-out"),
    md_out: Path | None = typer.Option(None, "--md-out"),
    verbose: bool = typer.Option(False, "--verbose"),
) -> None:
    """Network plus service and resource health, suitable for a periodic job."""
    configure_logging(verbose)
    _check_command(HEALTH_PHASES, config, dns, json_out, md_out, "hostnet health")


if __name__ == "__main__":
    app()
