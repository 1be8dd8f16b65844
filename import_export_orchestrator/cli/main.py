"""
Main CLI entry point for the Import/Export Orchestrator

Operator commands for schema setup, expired-file cleanup, history browsing
and import template generation.
"""

import asyncio
import json
import sys
from pathlib import Path
from typing import Optional

import click

from ..config import EngineSettings
from ..core.context import TenantContext
from ..core.exceptions import ImportExportError
from ..core.orchestrator import ImportExportOrchestrator
from ..models.job import OperationType, ProcessingStatus, ExportFormat
from ..models.history import HistoryRecord
from ..formats.templates import generate_import_template
from ..utils.database import DatabaseManager
from ..utils.logger import setup_logger


@click.group()
@click.option('--config', '-c', type=click.Path(exists=True), help='YAML configuration file')
@click.option('--database-url', '-d', help='Database connection URL')
@click.option('--storage-path', '-s', help='File store directory')
@click.option('--log-level', '-l', default=None, help='Log level')
@click.option('--verbose', '-v', is_flag=True, help='Verbose output')
@click.pass_context
def cli(ctx, config, database_url, storage_path, log_level, verbose):
    """Import/Export Orchestrator CLI"""

    ctx.ensure_object(dict)

    try:
        settings = EngineSettings.from_yaml(config) if config else EngineSettings.from_env()
        overrides = {
            "database_url": database_url,
            "storage_path": storage_path,
            "log_level": log_level,
        }
        overrides = {key: value for key, value in overrides.items() if value is not None}
        if overrides:
            settings = EngineSettings.load({**settings.to_dict(), **overrides})
    except ImportExportError as e:
        click.echo(f"Invalid configuration: {e.message}", err=True)
        sys.exit(2)

    # Set up logging
    logger = setup_logger(
        "import_export_orchestrator",
        level=settings.log_level,
        structured=settings.structured_logging and not verbose
    )
    ctx.obj['logger'] = logger
    ctx.obj['settings'] = settings
    ctx.obj['verbose'] = verbose


@cli.command('init-db')
@click.pass_context
def init_db(ctx):
    """Create the history table and indexes"""
    settings: EngineSettings = ctx.obj['settings']
    if not settings.database_url:
        click.echo("A database URL is required (--database-url or IMPORT_EXPORT_DATABASE_URL)", err=True)
        sys.exit(2)

    async def _init():
        db = DatabaseManager(settings.database_url, pool_size=settings.database_pool_size)
        try:
            await db.initialize()
            await db.ensure_schema()
        finally:
            await db.close()

    try:
        asyncio.run(_init())
    except ImportExportError as e:
        click.echo(f"Error initializing database: {e.message}", err=True)
        sys.exit(1)

    click.echo("History schema is ready")


@cli.command('cleanup')
@click.pass_context
def cleanup(ctx):
    """Delete files linked to expired history records"""
    settings: EngineSettings = ctx.obj['settings']

    async def _cleanup():
        orchestrator = ImportExportOrchestrator.from_settings(settings, enable_cleanup=False)
        async with orchestrator:
            return await orchestrator.cleanup_expired_files()

    try:
        removed = asyncio.run(_cleanup())
    except ImportExportError as e:
        click.echo(f"Error during cleanup: {e.message}", err=True)
        sys.exit(1)

    click.echo(f"Removed {removed} expired file(s)")


@cli.command('history')
@click.argument('entity_type', required=False)
@click.option('--organization', '-o', required=True, help='Organization id')
@click.option('--operation', type=click.Choice([op.value for op in OperationType], case_sensitive=False),
              help='Filter by operation')
@click.option('--status', type=click.Choice([s.value for s in ProcessingStatus], case_sensitive=False),
              help='Filter by status')
@click.option('--page', type=int, default=1, help='Page number (1-based)')
@click.option('--page-size', type=int, default=20, help='Records per page')
@click.option('--json', 'as_json', is_flag=True, help='Print raw JSON')
@click.pass_context
def history(ctx, entity_type, organization, operation, status, page, page_size, as_json):
    """Show import/export history for an organization"""
    settings: EngineSettings = ctx.obj['settings']
    context = TenantContext(organization_id=organization)

    async def _history():
        orchestrator = ImportExportOrchestrator.from_settings(settings, enable_cleanup=False)
        async with orchestrator:
            return await orchestrator.get_all_history(
                context,
                entity_type=entity_type,
                operation_type=_choice(OperationType, operation),
                status=_choice(ProcessingStatus, status),
                page=page,
                page_size=page_size,
            )

    try:
        result = asyncio.run(_history())
    except ImportExportError as e:
        click.echo(f"Error reading history: {e.message}", err=True)
        sys.exit(1)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        return

    if not result.items:
        click.echo("No history records found")
        return

    click.echo(f"{'Created':<20} {'Entity':<15} {'Operation':<10} {'Status':<11} {'Progress':<9} File")
    click.echo("-" * 90)
    for record in result.items:
        _display_history_row(record)
    click.echo()
    click.echo(f"Page {result.page} of {result.total_pages} ({result.total_count} records)")

    if ctx.obj['verbose']:
        for record in result.items:
            if record.error_message:
                click.echo(f"{record.job_id}: {record.error_message}")


@cli.command('template')
@click.argument('entity_type')
@click.option('--header', 'headers', multiple=True, required=True, help='Column header (repeatable)')
@click.option('--format', 'template_format', type=click.Choice(['excel', 'csv'], case_sensitive=False),
              default='excel', help='Template format')
@click.option('--output', type=click.Path(dir_okay=False), help='Output file path')
@click.pass_context
def template(ctx, entity_type, headers, template_format, output):
    """Write an import template for ENTITY_TYPE"""
    fmt = ExportFormat.parse(template_format)
    data = generate_import_template(entity_type, fmt, list(headers))
    path = Path(output or f"{entity_type}_Import_Template.{fmt.extension}")
    path.write_bytes(data)
    click.echo(f"Template written to {path}")


def _choice(enum_cls, value: Optional[str]):
    if value is None:
        return None
    for member in enum_cls:
        if member.value.lower() == value.lower():
            return member
    return None


def _display_history_row(record: HistoryRecord):
    """Display one history record as a table row"""
    created = record.created_at.strftime("%Y-%m-%d %H:%M:%S") if record.created_at else ""
    click.echo(
        f"{created:<20} {record.entity_type[:14]:<15} {record.operation_type.value:<10} "
        f"{record.status.value:<11} {str(record.progress) + '%':<9} {record.file_name}"
    )


def main():
    """Main CLI entry point"""
    cli()


if __name__ == '__main__':
    main()
