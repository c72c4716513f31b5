"""Rule registry for crudforge.

Provides registration and lookup of validation rule tags. Rule strings use
a comma-separated ``tag`` / ``tag=param`` syntax (``required,gt=0``) and are
compiled once per distinct string.
"""

from crudforge.validation.types import CompiledRule, RuleFactory, ValidatorFault


class RuleRegistry:
    """Process-wide registry of rule tags.

    Rules must be explicitly registered before rule strings referencing
    them can be compiled. Built-in rules are registered at application
    startup via register_builtin_rules().

    Example:
        # Register a custom rule
        RuleRegistry.register_factory("even", lambda param: lambda v: v % 2 == 0)

        # Later, compile from metadata
        rules = RuleRegistry.compile("required,even")
    """

    _factories: dict[str, RuleFactory] = {}
    _compiled: dict[str, tuple[CompiledRule, ...]] = {}

    @classmethod
    def register_factory(cls, name: str, factory: RuleFactory) -> None:
        """Register a factory that builds a rule check from its parameter.

        Idempotent - re-registering the same name is a no-op.

        Args:
            name: Rule tag as written in rule strings (e.g., "gt")
            factory: Function taking the parameter string and returning a check
        """
        if name in cls._factories:
            return  # Already registered, no-op
        cls._factories[name] = factory

    @classmethod
    def compile(cls, rule: str) -> tuple[CompiledRule, ...]:
        """Compile a rule string into its ordered checks.

        Args:
            rule: The rule string from metadata (e.g., "required,gt=0")

        Returns:
            Compiled rules in declared order

        Raises:
            ValidatorFault: If a tag is unknown or a parameter is malformed
        """
        if rule in cls._compiled:
            return cls._compiled[rule]

        compiled = []
        for part in rule.split(","):
            part = part.strip()
            if not part:
                raise ValidatorFault(f"Empty tag in rule '{rule}'")
            tag, sep, param = part.partition("=")
            if tag not in cls._factories:
                raise ValidatorFault(
                    f"Rule tag '{tag}' in '{rule}' is not registered. "
                    "Available tags: " + ", ".join(cls.list_registered())
                )
            try:
                check = cls._factories[tag](param if sep else None)
            except ValueError as e:
                raise ValidatorFault(f"Malformed rule '{part}' in '{rule}': {e}") from e
            compiled.append(CompiledRule(tag=tag, param=param if sep else None, check=check))

        result = tuple(compiled)
        cls._compiled[rule] = result
        return result

    @classmethod
    def is_registered(cls, name: str) -> bool:
        """Check if a rule tag is registered."""
        return name in cls._factories

    @classmethod
    def list_registered(cls) -> list[str]:
        """List all registered rule tags."""
        return sorted(cls._factories.keys())

    @classmethod
    def clear(cls) -> None:
        """Clear all registrations. Primarily for testing."""
        cls._factories.clear()
        cls._compiled.clear()
