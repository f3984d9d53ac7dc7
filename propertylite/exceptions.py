from typing import Any, Iterable, List, Optional


# --- Base Error ---
class PropertyError(Exception):
    """Base class for every error raised by propertylite."""

    def __init__(self, message: str, property_name: Optional[str] = None) -> None:
        super().__init__(message)
        self.property_name = property_name


def _describe_types(types: Optional[tuple]) -> str:
    if not types:
        return "object"
    if len(types) == 1:
        return getattr(types[0], "__name__", repr(types[0]))
    names = ", ".join(getattr(t, "__name__", repr(t)) for t in types)
    return f"({names})"


# --- Declaration Errors ---
class PropertyDeclarationError(PropertyError, ValueError):
    """Raised when a property declaration itself is invalid."""


class RegistryClosedError(PropertyError, RuntimeError):
    """Raised when declaring a property on a registry closed for modification."""

    def __init__(self, property_name: str, owner: str) -> None:
        super().__init__(
            f"Cannot declare '{property_name}' on {owner}: "
            f"properties are sealed once instances exist",
            property_name,
        )
        self.owner = owner


# --- Construction Errors ---
class UnknownPropertyError(PropertyError, TypeError):
    """Raised when a name has no matching declaration."""

    def __init__(self, names: Iterable[str], owner: str) -> None:
        self.names: List[str] = list(names)
        self.owner = owner
        quoted = ", ".join(f"'{n}'" for n in self.names)
        if len(self.names) == 1:
            message = f"{quoted} is not a valid property of {owner}"
        else:
            message = f"{quoted} are not valid properties of {owner}"
        super().__init__(message, self.names[0] if self.names else None)


# --- Validation Errors ---
class WrongTypeError(PropertyError, TypeError):
    """Scalar value or collection element is not of the expected type."""

    def __init__(
        self, property_name: str, types: Optional[tuple], element: bool = False
    ) -> None:
        self.expected_types = types
        self.element = element
        expected = _describe_types(types)
        if element:
            message = (
                f"'{property_name}' contains elements that are not instances "
                f"of {expected}"
            )
        else:
            message = f"'{property_name}' is not an instance of {expected}"
        super().__init__(message, property_name)


class MissingValueError(WrongTypeError):
    """A nil-refusing property received None or no value at all."""

    def __init__(self, property_name: str, types: Optional[tuple]) -> None:
        super().__init__(property_name, types)
        self.args = (
            f"'{property_name}' is required and cannot be None "
            f"(expected {_describe_types(types)})",
        )


class NotASequenceError(PropertyError, TypeError):
    """A collection property received something that is not a sequence."""

    def __init__(self, property_name: str, value: Any) -> None:
        self.value_type = type(value)
        super().__init__(
            f"'{property_name}' is not a sequence (got {type(value).__name__})",
            property_name,
        )


class NotACollectionError(PropertyError, TypeError):
    """append/extend was used on a scalar property."""

    def __init__(self, property_name: str) -> None:
        super().__init__(
            f"'{property_name}' is not a collection property", property_name
        )


class NotAcceptedError(PropertyError, ValueError):
    """Value, or one of its elements, is not among the accepted values."""

    def __init__(
        self, property_name: str, accepted_values: tuple, element: bool = False
    ) -> None:
        self.accepted_values = accepted_values
        self.element = element
        listing = "[" + ", ".join(repr(v) for v in accepted_values) + "]"
        if element:
            message = (
                f"'{property_name}' contains elements that are not included "
                f"in {listing}"
            )
        else:
            message = f"'{property_name}' is not included in {listing}"
        super().__init__(message, property_name)


class AssertionFailedError(PropertyError, ValueError):
    """Value, or one of its elements, does not satisfy the assertion."""

    def __init__(self, property_name: str, element: bool = False) -> None:
        self.element = element
        if element:
            message = (
                f"'{property_name}' contains elements that do not respect "
                f"the assertion"
            )
        else:
            message = f"'{property_name}' does not respect the assertion"
        super().__init__(message, property_name)


# --- Instance State Errors ---
class FrozenInstanceError(PropertyError, AttributeError):
    """Raised when mutating an immutable record."""

    def __init__(self, owner: str, property_name: Optional[str] = None) -> None:
        super().__init__(f"Cannot modify frozen '{owner}' instance", property_name)
