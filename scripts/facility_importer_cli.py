#!/usr/bin/env python3
"""
Facility Workbook Import CLI

Imports objects, vertices and links from an Excel workbook into a facility
model and reports what was added, updated or skipped.

Usage:
    # Import a workbook
    python scripts/facility_importer_cli.py import --file layout.xlsx

    # Import, keep the import log and print a JSON summary
    python scripts/facility_importer_cli.py import --file layout.xlsx --log-file import.log --json

    # Show how worksheets will be classified
    python scripts/facility_importer_cli.py inspect --file layout.xlsx
"""

import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

import logging
from typing import Optional

import click
from dotenv import load_dotenv

from backend.config import get_settings
from backend.models.facility import FacilityModel
from services.exceptions import FacilityImportError
from services.facility_import_service import FacilityImportService
from services.import_log import ImportLog, LogSeverity
from services.worksheet_service import classify_worksheet

# Load environment variables
load_dotenv()

logger = logging.getLogger('facility_importer_cli')


def configure_logging(level: str):
    settings = get_settings()
    handlers = [logging.StreamHandler(sys.stderr)]
    if settings.LOG_FILE:
        handlers.append(logging.FileHandler(settings.LOG_FILE))
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=settings.LOG_FORMAT,
        handlers=handlers
    )


@click.group()
@click.option('--log-level', default=get_settings().LOG_LEVEL, show_default=True,
              help='Logging level for diagnostic output')
def cli(log_level: str):
    """Facility workbook import CLI"""
    configure_logging(log_level)


@cli.command('import')
@click.option('--file', '-f', 'file_path', required=True, type=click.Path(exists=True, dir_okay=False),
              help='Path to Excel workbook to import')
@click.option('--log-file', type=click.Path(dir_okay=False), help='Write the import log to this file')
@click.option('--excludes', envvar='LOG_EXCLUDES', default='',
              help='Comma list of regexes for messages to hide from the import log')
@click.option('--json', 'as_json', is_flag=True, help='Print the import summary as JSON')
def import_cmd(file_path: str, log_file: Optional[str], excludes: str, as_json: bool):
    """Import a facility workbook."""
    model = FacilityModel(name=Path(file_path).stem)
    log = ImportLog(excludes=excludes)

    def on_progress(stage: str, percent: float, message: str):
        if as_json:
            return
        bar_length = 40
        filled = int(bar_length * percent / 100)
        bar = '█' * filled + '░' * (bar_length - filled)
        click.echo(f"\r[{bar}] {percent:.1f}% - {message}", nl=False)

    service = FacilityImportService(model, log=log, progress_callback=on_progress)

    try:
        report = service.import_file(file_path)
    except FacilityImportError as e:
        logger.error(f"Import failed: {e}", exc_info=True)
        if not as_json:
            click.echo()
        click.echo(f"✗ Import failed: {e}", err=True)
        _write_log(log, log_file)
        sys.exit(1)

    _write_log(log, log_file)

    if as_json:
        click.echo(report.to_summary().model_dump_json(indent=2))
        return

    click.echo()  # New line after progress bar
    click.echo(f"\n✓ Import complete: {file_path}")

    click.echo("\nWorksheets:")
    for sheet in report.sheets:
        line = (f"  {sheet.sheet_name} [{sheet.kind}]: rows={sheet.rows_read} "
                f"added={sheet.added} updated={sheet.updated} skipped={sheet.skipped}")
        if sheet.aborted:
            line += f" (stopped at row {sheet.aborted_at_row})"
        click.echo(line)

    click.echo("\nModel:")
    click.echo(f"  Objects: {len(model) - len(model.links)}")
    click.echo(f"  Links: {len(model.links)}")
    click.echo(f"  Networks: {len(model.elements)}")
    click.echo(f"  Vertices staged: {report.vertices_staged}")

    problems = log.messages(LogSeverity.WARNING | LogSeverity.ERROR)
    if problems:
        click.echo(f"\n⚠️  {len(problems)} problems reported:")
        for message in problems[:10]:
            click.echo(f"  {message}")
        if len(problems) > 10:
            click.echo(f"  ... and {len(problems) - 10} more")


@cli.command('inspect')
@click.option('--file', '-f', 'file_path', required=True, type=click.Path(exists=True, dir_okay=False),
              help='Path to Excel workbook to inspect')
def inspect_cmd(file_path: str):
    """Show how each worksheet of a workbook would be imported."""
    service = FacilityImportService(FacilityModel())
    try:
        workbook = service.load_workbook(file_path)
    except FacilityImportError as e:
        click.echo(f"✗ {e}", err=True)
        sys.exit(1)

    try:
        click.echo(f"Worksheets in {file_path}:")
        for worksheet in workbook.worksheets:
            kind = classify_worksheet(worksheet.title) or 'ignored'
            click.echo(f"  {worksheet.title}: {kind} ({worksheet.max_row} rows)")
    finally:
        workbook.close()


def _write_log(log: ImportLog, log_file: Optional[str]):
    if log_file:
        log.write_logs(log_file)
        click.echo(f"Import log written to {log_file}", err=True)


if __name__ == '__main__':
    cli()
