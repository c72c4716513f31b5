"""
metadata/validator.py - validation of crudforge entity metadata files.

Two layers:
- JSON Schema (Draft 2020-12) for the shape of each ``entities/*.yaml`` file
- descriptor checks for what the schema cannot express: cross-entity edge
  references, name collisions, and rule strings that do not compile

Usage:
    from crudforge.metadata.validator import validate_metadata_dir

    issues = validate_metadata_dir(Path("metadata"))
    for issue in issues:
        print(issue)
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from jsonschema import Draft202012Validator
from jsonschema.exceptions import ValidationError

from crudforge.core.operation import WRITE_OPERATIONS
from crudforge.metadata.loader import MetadataLoader
from crudforge.validation import RuleRegistry, ValidatorFault, register_builtin_rules

logger = logging.getLogger(__name__)

_SCHEMAS_DIR = Path(__file__).parent / "schemas"
ENTITY_SCHEMA = "entity.schema.json"


@dataclass
class ValidationIssue:
    """A single validation finding for a metadata YAML file."""

    file: Path
    message: str
    path: str = ""          # JSON pointer path within the document, e.g. "fields[0]"
    severity: str = "error" # "error" | "warning"

    def __str__(self) -> str:
        loc = f" at {self.path}" if self.path else ""
        return f"[{self.severity.upper()}] {self.file}{loc}: {self.message}"


def _load_schema(name: str) -> dict[str, Any]:
    with (_SCHEMAS_DIR / name).open() as fh:
        return json.load(fh)


def _json_path(error: ValidationError) -> str:
    """Convert a jsonschema ValidationError path to a readable string."""
    parts = []
    for p in error.absolute_path:
        if isinstance(p, int):
            parts.append(f"[{p}]")
        else:
            parts.append(str(p))
    return "/".join(parts).replace("/[", "[")


def validate_yaml_file(
    yaml_path: Path,
    schema_name: str = ENTITY_SCHEMA,
    *,
    validator: Draft202012Validator | None = None,
) -> list[ValidationIssue]:
    """
    Validate a single YAML file against the named schema.

    Args:
        yaml_path:   Path to the YAML file to validate.
        schema_name: Filename of the schema (e.g. ``"entity.schema.json"``).
        validator:   Pre-built schema validator.  Built automatically if omitted.

    Returns:
        A list of :class:`ValidationIssue` objects (empty on success).
    """
    try:
        with yaml_path.open() as fh:
            doc = yaml.safe_load(fh)
    except yaml.YAMLError as exc:
        return [ValidationIssue(file=yaml_path, message=f"YAML parse error: {exc}")]

    if doc is None:
        return [
            ValidationIssue(file=yaml_path, message="File is empty or contains only whitespace")
        ]

    if validator is None:
        validator = Draft202012Validator(_load_schema(schema_name))

    return [
        ValidationIssue(file=yaml_path, message=error.message, path=_json_path(error))
        for error in sorted(validator.iter_errors(doc), key=_json_path)
    ]


def check_descriptors(metadata_dir: Path) -> list[ValidationIssue]:
    """
    Resolve all entities and compile every rule string they declare.

    Returns one issue for the first invariant violation, or one per rule
    string that does not compile.
    """
    loader = MetadataLoader(metadata_dir)
    try:
        loader.load_all()
    except (ValueError, KeyError, TypeError) as exc:
        return [ValidationIssue(file=metadata_dir / "entities", message=str(exc))]

    register_builtin_rules()
    issues: list[ValidationIssue] = []
    for name in loader.list_entities():
        entity = loader.get_entity(name)
        members = [(f.name, f.rules) for f in entity.fields]
        members += [(e.name, e.rules) for e in entity.edges]
        for member, rules in members:
            for operation in WRITE_OPERATIONS:
                rule = rules.for_operation(operation)
                if not rule:
                    continue
                try:
                    RuleRegistry.compile(rule)
                except ValidatorFault as exc:
                    issues.append(
                        ValidationIssue(
                            file=metadata_dir / "entities",
                            message=f"{name}.{member} ({operation.value}): {exc}",
                        )
                    )
    return issues


def validate_metadata_dir(metadata_dir: Path) -> list[ValidationIssue]:
    """
    Validate all YAML files under ``<metadata_dir>/entities`` against the
    entity JSON Schema.

    Returns:
        A flat list of :class:`ValidationIssue` objects across all files.
        Empty list means all files are valid.
    """
    if not metadata_dir.is_dir():
        return [
            ValidationIssue(
                file=metadata_dir,
                message=f"Metadata directory does not exist: {metadata_dir}",
            )
        ]

    try:
        validator = Draft202012Validator(_load_schema(ENTITY_SCHEMA))
    except (FileNotFoundError, json.JSONDecodeError) as exc:
        return [
            ValidationIssue(
                file=_SCHEMAS_DIR,
                message=f"Failed to load JSON Schema files: {exc}",
            )
        ]

    all_issues: list[ValidationIssue] = []
    target = metadata_dir / "entities"
    if target.is_dir():
        for yaml_file in sorted(target.glob("*.yaml")):
            all_issues.extend(validate_yaml_file(yaml_file, validator=validator))
    logger.debug("Validated %s: %d issue(s)", target, len(all_issues))
    return all_issues
