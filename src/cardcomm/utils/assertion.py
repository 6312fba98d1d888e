"""Fluent argument validation.

Example:
    >>> Assert.get_instance().not_null(data, "data").greater_or_equal(len(data), 2, "data.length")
"""

from typing import Any, Optional, Sized

from cardcomm.card.exceptions import InvalidArgumentError


class Assert:
    """Chainable argument checks raising InvalidArgumentError on violation."""

    _instance: Optional["Assert"] = None

    @classmethod
    def get_instance(cls) -> "Assert":
        """Get the shared (stateless) instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def not_null(self, obj: Any, name: str) -> "Assert":
        """Check that the object is not None."""
        if obj is None:
            raise InvalidArgumentError(f"Argument '{name}' is null.")
        return self

    def not_empty(self, obj: Optional[Sized], name: str) -> "Assert":
        """Check that the object is neither None nor empty."""
        if obj is None:
            raise InvalidArgumentError(f"Argument '{name}' is null.")
        if len(obj) == 0:
            raise InvalidArgumentError(f"Argument '{name}' is empty.")
        return self

    def is_true(self, condition: bool, name: str) -> "Assert":
        """Check that the condition holds."""
        if not condition:
            raise InvalidArgumentError(f"Condition '{name}' is false.")
        return self

    def greater_or_equal(self, number: Optional[int], minimum: int, name: str) -> "Assert":
        """Check that the number is not None and at least minimum."""
        if number is None:
            raise InvalidArgumentError(f"Argument '{name}' is null.")
        if number < minimum:
            raise InvalidArgumentError(
                f"Argument '{name}' has a value [{number}] less than [{minimum}]."
            )
        return self

    def is_equal(self, number: Optional[int], value: int, name: str) -> "Assert":
        """Check that the number equals value."""
        if number is None:
            raise InvalidArgumentError(f"Argument '{name}' is null.")
        if number != value:
            raise InvalidArgumentError(
                f"Argument '{name}' has a value [{number}] not equal to [{value}]."
            )
        return self

    def is_in_range(
        self, number: Optional[int], minimum: int, maximum: int, name: str
    ) -> "Assert":
        """Check that the number lies in [minimum, maximum]."""
        if number is None:
            raise InvalidArgumentError(f"Argument '{name}' is null.")
        if number < minimum:
            raise InvalidArgumentError(
                f"Argument '{name}' has a value [{number}] less than [{minimum}]."
            )
        if number > maximum:
            raise InvalidArgumentError(
                f"Argument '{name}' has a value [{number}] more than [{maximum}]."
            )
        return self
