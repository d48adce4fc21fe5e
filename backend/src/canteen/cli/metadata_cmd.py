"""Metadata CLI command: validate entity documents."""

from pathlib import Path

import click

from canteen.config import Settings
from canteen.errors import ConfigurationError
from canteen.metadata.loader import MetadataLoader
from canteen.metadata.validator import validate_entities_dir, validate_entity_file


@click.command()
@click.option(
    "--path",
    "target_path",
    default=None,
    type=click.Path(exists=True, path_type=Path),
    help="Validate a single entity document instead of the whole entities directory.",
)
def validate(target_path: Path | None):
    """Validate entity documents against the entity JSON Schema."""
    if target_path is not None:
        issues = validate_entity_file(target_path)
    else:
        try:
            entities_path = Settings.from_env().entities_path
        except ConfigurationError as e:
            click.echo(click.style(f"Error: {e}", fg="red"), err=True)
            raise SystemExit(1)
        issues = validate_entities_dir(entities_path)

    for issue in issues:
        click.echo(click.style(str(issue), fg="red"))

    if issues:
        click.echo(click.style(f"\n{len(issues)} schema error(s) found", fg="red", bold=True))
        raise SystemExit(1)

    # Semantic (loader) validation, only for the whole directory
    if target_path is None:
        loader = MetadataLoader(entities_path)
        try:
            loader.load_all()
        except ConfigurationError as e:
            click.echo(click.style(f"\nSemantic validation failed: {e}", fg="red"), err=True)
            raise SystemExit(1)

        entities = loader.list_entities()
        click.echo(f"\nLoaded {len(entities)} entities:")
        for name in sorted(entities):
            entity = loader.get_entity(name)
            click.echo(f"  ✓ {name} ({len(entity.fields)} fields, table: {entity.table_name})")

    click.echo(click.style("\nAll entity documents are valid.", fg="green", bold=True))
