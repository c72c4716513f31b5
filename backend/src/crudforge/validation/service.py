"""Evaluates descriptor rules against a decoded payload."""

from typing import Any

from crudforge.core.operation import Operation
from crudforge.core.payload import ABSENT, MutationPayload
from crudforge.metadata.loader import EntityDescriptor
from crudforge.validation.registry import RuleRegistry
from crudforge.validation.types import CompiledRule, ValidationResult, ValidatorFault


class Validator:
    """Applies the per-field and per-edge rules of an entity to a payload.

    Only present values are checked against rules. An absent or cleared
    member fails only when its rule contains ``required``. The first
    violated rule per member is reported.
    """

    def __init__(self, registry: type[RuleRegistry] = RuleRegistry):
        self.registry = registry

    def validate(
        self,
        entity: EntityDescriptor,
        payload: MutationPayload,
        operation: Operation,
    ) -> ValidationResult:
        """Validate a payload for a write operation.

        Raises:
            ValidatorFault: If a declared rule is malformed
        """
        errors: dict[str, str] = {}
        members = [(f.name, f.rules) for f in entity.fields]
        members += [(e.name, e.rules) for e in entity.edges]

        for name, rules in members:
            rule = rules.for_operation(operation)
            if not rule:
                continue
            message = self._check(self.registry.compile(rule), payload.get(name))
            if message is not None:
                errors[name] = message

        return ValidationResult.from_errors(errors)

    def _check(self, rules: tuple[CompiledRule, ...], value: Any) -> str | None:
        """Return the first violation message for a value, or None."""
        if value is ABSENT or value is None:
            for rule in rules:
                if rule.tag == "required":
                    return rule.message
            return None

        for rule in rules:
            try:
                passed = rule.check(value)
            except TypeError as e:
                raise ValidatorFault(
                    f"Rule '{rule.tag}' cannot be applied to {type(value).__name__}: {e}"
                ) from e
            if not passed:
                return rule.message
        return None
