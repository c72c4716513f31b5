"""Core types for the crudforge validation system."""

from dataclasses import dataclass, field
from typing import Any, Callable


class ValidatorFault(Exception):
    """A validation rule is itself malformed.

    Always an internal condition: the message names the rule and is logged,
    never shown to the client.
    """


# A rule check receives a present, non-null value and returns True if it passes.
RuleCheck = Callable[[Any], bool]

# A rule factory receives the rule parameter (``"0"`` in ``gt=0``, None for
# ``email``) and returns the check. It raises ValueError on a bad parameter.
RuleFactory = Callable[[str | None], RuleCheck]


@dataclass(frozen=True)
class CompiledRule:
    """One ``tag[=param]`` entry of a rule string, ready to evaluate."""

    tag: str
    param: str | None
    check: RuleCheck

    @property
    def message(self) -> str:
        """Client-facing violation message (``gt:0 violated``)."""
        if self.tag == "required":
            return "required"
        if self.param is None:
            return f"{self.tag} violated"
        return f"{self.tag}:{self.param} violated"


@dataclass
class ValidationResult:
    """Result of validating a payload.

    Attributes:
        valid: True if no rule was violated
        errors: Field or edge name -> violation message, in descriptor order
    """

    valid: bool
    errors: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_errors(cls, errors: dict[str, str]) -> "ValidationResult":
        return cls(valid=not errors, errors=errors)
