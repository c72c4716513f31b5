"""Metadata CLI commands - validate."""

from pathlib import Path

import click

from crudforge.api.app import resolve_base_path, resolve_metadata_path
from crudforge.metadata.loader import MetadataLoader
from crudforge.metadata.validator import (
    check_descriptors,
    validate_metadata_dir,
    validate_yaml_file,
)


@click.group()
def metadata():
    """Metadata commands."""
    pass


@metadata.command()
@click.option(
    "--path",
    "target_path",
    default=None,
    type=click.Path(exists=True, path_type=Path),
    help="Validate a single YAML file instead of the whole metadata directory.",
)
def validate(target_path: Path | None):
    """Validate entity metadata: JSON Schema, descriptor checks, rule syntax."""
    metadata_path = resolve_metadata_path(resolve_base_path())

    # ── Schema (JSON Schema) validation ─────────────────────────────────────
    if target_path is not None:
        schema_issues = validate_yaml_file(target_path)
    else:
        if not metadata_path.exists():
            click.echo(f"Error: Metadata directory not found at {metadata_path}", err=True)
            raise SystemExit(1)
        schema_issues = validate_metadata_dir(metadata_path)

    for issue in schema_issues:
        click.echo(click.style(str(issue), fg="red"))

    if schema_issues:
        click.echo(
            click.style(f"\n{len(schema_issues)} schema error(s) found", fg="red", bold=True)
        )
        raise SystemExit(1)

    # ── Descriptor and rule validation ───────────────────────────────────────
    # Edge targets span files, so this only runs for the full directory
    if target_path is None:
        issues = check_descriptors(metadata_path)
        if issues:
            for issue in issues:
                click.echo(click.style(str(issue), fg="red"), err=True)
            click.echo(
                click.style(f"\n{len(issues)} descriptor error(s) found", fg="red", bold=True),
                err=True,
            )
            raise SystemExit(1)

        loader = MetadataLoader(metadata_path)
        loader.load_all()
        entities = loader.list_entities()
        click.echo(f"\nLoaded {len(entities)} entities:")
        for name in sorted(entities):
            entity = loader.get_entity(name)
            click.echo(
                f"  ✓ {name} ({len(entity.fields)} fields, {len(entity.edges)} edges, "
                f"prefix: {entity.prefix})"
            )

    click.echo(click.style("\nAll metadata is valid.", fg="green", bold=True))
