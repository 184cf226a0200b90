"""Validate CLI command: run a report through its form's validations."""

import asyncio
import json
from pathlib import Path

import click

from fieldforms.config import Settings, SettingsError
from fieldforms.store import StoreConfig, create_store
from fieldforms.validation import (
    ExtraValidationError,
    RuleSyntaxError,
    ValidationService,
)


def _load_settings(config_path: Path | None) -> Settings:
    try:
        if config_path is not None:
            return Settings.from_yaml(config_path)
        return Settings.from_env(Path.cwd())
    except SettingsError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(2)


@click.command()
@click.argument("doc_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--config",
    "config_path",
    default=None,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Settings YAML file (default: $FIELDFORMS_CONFIG or ./fieldforms.yaml).",
)
@click.option("--form", default=None, help="Form code to validate against (default: the report's form).")
@click.option("--ignore", "ignores", multiple=True, help="Property that is always valid. Repeatable.")
@click.option("--db", "database_url", default=None, help="Store URL, e.g. memory:// or sqlite:///reports.db.")
def validate(
    doc_path: Path,
    config_path: Path | None,
    form: str | None,
    ignores: tuple[str, ...],
    database_url: str | None,
):
    """Validate the JSON report in DOC_PATH.

    Prints the error list as JSON. Exits 1 when the report is invalid and 2
    when validation itself could not run.
    """
    settings = _load_settings(config_path)

    try:
        doc = json.loads(doc_path.read_text())
    except json.JSONDecodeError as e:
        click.echo(f"Error: {doc_path} is not valid JSON: {e}", err=True)
        raise SystemExit(2)

    form_code = form or doc.get("form")
    if not form_code:
        click.echo("Error: report has no form; pass --form", err=True)
        raise SystemExit(2)

    validations = settings.validations_for(str(form_code))
    if not validations:
        click.echo(
            click.style(f"No validations configured for form '{form_code}'", fg="yellow"),
            err=True,
        )

    store_config = StoreConfig(url=database_url) if database_url else settings.store_config(Path.cwd())
    store = create_store(store_config)
    service = ValidationService.from_settings(store, settings)

    try:
        errors = asyncio.run(service.validate(doc, validations, list(ignores)))
    except RuleSyntaxError as e:
        for message in e.errors:
            click.echo(click.style(message, fg="red"), err=True)
        raise SystemExit(2)
    except ExtraValidationError as e:
        click.echo(click.style(str(e), fg="red"), err=True)
        raise SystemExit(2)
    finally:
        close = getattr(store, "close", None)
        if close is not None:
            close()

    click.echo(json.dumps([error.to_dict() for error in errors], indent=2))
    if errors:
        raise SystemExit(1)
