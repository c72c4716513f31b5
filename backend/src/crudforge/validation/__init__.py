"""crudforge validation system.

Rule strings declared on fields and edges (``required,gt=0``) are compiled
through a process-wide registry keyed by rule tag.

Usage:
    from crudforge.validation import Validator, register_builtin_rules

    # At application startup
    register_builtin_rules()

    result = Validator().validate(entity, payload, Operation.CREATE)
"""

from crudforge.validation.registry import RuleRegistry
from crudforge.validation.rules import register_builtin_rules
from crudforge.validation.service import Validator
from crudforge.validation.types import (
    CompiledRule,
    RuleCheck,
    RuleFactory,
    ValidationResult,
    ValidatorFault,
)

__all__ = [
    "CompiledRule",
    "RuleCheck",
    "RuleFactory",
    "RuleRegistry",
    "ValidationResult",
    "Validator",
    "ValidatorFault",
    "register_builtin_rules",
]
