"""
Aurora Engine — Error taxonomy.

Only malformed input or programming misuse raises. Expected negative
outcomes (veto failure, kill factors, failed mandatory conditions) are
ordinary result values.
"""


class AuroraError(Exception):
    """Base class for all engine errors."""


class ValidationError(AuroraError, ValueError):
    """A required input field is missing or out of range."""

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(f"{field}: {message}")


class UnknownConditionError(AuroraError, KeyError):
    """A veto condition name that is not part of the taxonomy."""

    def __init__(self, condition: str):
        self.condition = condition
        super().__init__(f"Veto condition '{condition}' not found")

    def __str__(self) -> str:
        return self.args[0]


class UnsupportedCommodityError(ValidationError):
    """No playbook variant is registered for the commodity."""

    def __init__(self, commodity: str):
        self.commodity = commodity
        super().__init__("commodity", f"no playbook registered for '{commodity}'")
