"""CLI for redcap-forms."""

import logging
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from redcap_forms import __version__
from redcap_forms.config import load_settings
from redcap_forms.exceptions import RedcapFormsError
from redcap_forms.project import ProjectContext

app = typer.Typer(
    name="redcap-forms",
    help="Inspect REDCap instruments and survey completion status.",
    no_args_is_help=True,
)
console = Console()

DataDirOption = Annotated[
    Path | None,
    typer.Option(
        "--data-dir",
        "-d",
        envvar="REDCAP_FORMS_DATA_DIR",
        help="Directory holding the project's JSON exports",
    ),
]
ConfigOption = Annotated[
    Path | None,
    typer.Option("--config", "-c", help="Path to config.yaml"),
]


def version_callback(value: bool) -> None:
    if value:
        console.print(f"redcap-forms version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option("--version", "-v", callback=version_callback, is_eager=True),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", help="Log debug output"),
    ] = False,
) -> None:
    """redcap-forms: REDCap instruments, records and survey status."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


def _context(data_dir: Path | None, config: Path | None) -> ProjectContext:
    try:
        settings = load_settings(config)
        if data_dir is not None:
            settings = settings.model_copy(update={"data_dir": data_dir})
        return ProjectContext.from_settings(settings)
    except RedcapFormsError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)


@app.command()
def instruments(
    data_dir: DataDirOption = None,
    config: ConfigOption = None,
) -> None:
    """List the project's instruments with their field counts."""
    context = _context(data_dir, config)

    project = context.get_project()
    if project is not None:
        console.print(f"[bold]{project.project_title}[/bold] (project {project.project_id})")

    definitions = context.get_instruments()
    if not definitions:
        console.print("[yellow]No instruments found[/yellow]")
        return

    table = Table()
    table.add_column("Instrument")
    table.add_column("Label")
    table.add_column("Required", justify="right")
    table.add_column("Optional", justify="right")
    table.add_column("Events")
    table.add_column("Continues to")

    for definition in definitions.values():
        name = definition.get_name() + (" [cyan](CAT)[/cyan]" if definition.is_cat(False) else "")
        next_instrument = definition.get_next_instrument()
        table.add_row(
            name,
            definition.get_label(),
            str(len(definition.get_required_form_field_names())),
            str(len(definition.get_optional_form_field_names())),
            ", ".join(definition.get_events()),
            next_instrument.get_name() if next_instrument else "",
        )

    console.print(table)


@app.command()
def status(
    record_id: Annotated[str, typer.Argument(help="Id of the record")],
    instrument: Annotated[str, typer.Argument(help="Name of the instrument")],
    event: Annotated[
        str | None,
        typer.Option("--event", "-e", help="Event to report (longitudinal projects)"),
    ] = None,
    data_dir: DataDirOption = None,
    config: ConfigOption = None,
) -> None:
    """Show the survey status of one record for one instrument.

    On longitudinal projects every event of the instrument is shown unless
    --event is given.

    Examples:
        redcap-forms status 1001 consent_form --data-dir exports/study
        redcap-forms status 1001 consent_form -e initial_visit_arm_1
    """
    context = _context(data_dir, config)

    try:
        record = context.instrument_record(instrument, record_id)
    except RedcapFormsError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    if not record.is_loaded():
        console.print(f"[red]Error:[/red] Record not found: {record_id}")
        raise typer.Exit(1)

    chain = " -> ".join(record.instrument.chain_names())
    console.print(f"[bold]Record {record_id}[/bold]: {chain}")

    events: list[str | None] = [None]
    if record.project_uses_events():
        events = [event] if event else list(record.get_events())

    for event_name in events:
        try:
            survey_status = record.get_status(event_name)
            counts = record.get_cumulative_field_counts(event_name)
        except RedcapFormsError as e:
            console.print(f"[red]Error:[/red] {e}")
            raise typer.Exit(1)

        if event_name:
            console.print(f"\n[bold]{event_name}[/bold]")
        console.print(f"  Status: {survey_status}")
        console.print(f"  Required fields: {counts.completed_count}/{counts.required_count}")
        if counts.has_incomplete_field():
            console.print(
                f"  First incomplete: {counts.first_incomplete_instrument}.{counts.first_incomplete_field}"
            )

        timestamp = record.get_timestamp(event_name)
        if timestamp:
            console.print(f"  Submitted: {timestamp:%Y-%m-%d %H:%M:%S}")


if __name__ == "__main__":
    app()
