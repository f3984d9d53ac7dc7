import logging
from typing import Any, Callable, Dict

from .exceptions import PropertyError, UnknownPropertyError
from .registry import PropertyRegistry

logger = logging.getLogger(__name__)


def construct(instance: Any, registry: PropertyRegistry, values: Dict[str, Any]) -> None:
    """Fill every slot of a fresh instance, in declaration order.

    Unknown keys are refused up front. Each property then resolves its value
    (supplied, else default, else None) and goes through ``instance.set``
    exactly like a later assignment would. The first failure propagates and
    the caller never receives the half-built instance.
    """
    owner = type(instance).__name__
    unknown = registry.unknown(values)
    if unknown:
        raise UnknownPropertyError(unknown, owner)

    for declaration in registry:
        value = declaration.resolve(values)
        try:
            instance._assign(declaration, value)
        except PropertyError as exc:
            logger.debug("Construction of %s rejected at '%s': %s", owner, declaration.name, exc)
            raise


# --- Fluent Builder ---
class InstanceBuilder:
    """Fluent interface builder for creating Record instances."""

    def __init__(self, record_class: Any) -> None:
        self._record_class = record_class
        self._values: Dict[str, Any] = {}

    def __getattr__(self, name: str) -> Callable[..., Any]:
        """Create a fluent setter method for any property."""
        if name.startswith("_"):
            raise AttributeError(
                f"'{self.__class__.__name__}' object has no attribute '{name}'"
            )

        def setter(value: Any) -> "InstanceBuilder":
            self._values[name] = value
            return self

        return setter

    def set(self, name: str, value: Any) -> "InstanceBuilder":
        """Explicit setter, for names that are not valid Python identifiers."""
        self._values[name] = value
        return self

    def build(self, **additional_kwargs: Any) -> Any:
        """Build the final record. Validation happens here, not in the setters."""
        final_values = {**self._values, **additional_kwargs}
        return self._record_class(**final_values)
