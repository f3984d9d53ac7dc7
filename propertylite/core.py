import copy
import logging
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterable, List, Optional, get_type_hints

from .builder import InstanceBuilder, construct
from .exceptions import (
    FrozenInstanceError,
    NotACollectionError,
    NotASequenceError,
    PropertyDeclarationError,
    UnknownPropertyError,
)
from .registry import MISSING, PropertyDeclaration, PropertyRegistry
from .rules import is_sequence

logger = logging.getLogger(__name__)


# --- Class Body Declarations ---
class PropertySpec:
    """Placeholder left in a class body by ``prop()``; consumed by RecordMeta."""

    __slots__ = ("type_spec", "options")

    def __init__(self, type_spec: Any, **options: Any) -> None:
        self.type_spec = type_spec
        self.options = options

    def __repr__(self) -> str:
        return f"prop({self.type_spec!r}, {self.options!r})"


def prop(
    type_spec: Any = MISSING,
    *,
    collection: bool = False,
    accepted_values: Optional[Iterable[Any]] = None,
    assertion: Optional[Callable[[Any], Any]] = None,
    allow_nil: bool = False,
    default: Any = MISSING,
) -> Any:
    """Declare a property in a class body.

    When ``type_spec`` is omitted the class annotation for the name is used,
    and without an annotation the property accepts any type.

    Example:
        class Basket(Record):
            owner: str = prop()
            fruits = prop(List[str], accepted_values={"apple", "pear"}, default=[])
    """
    return PropertySpec(
        type_spec,
        collection=collection,
        accepted_values=accepted_values,
        assertion=assertion,
        allow_nil=allow_nil,
        default=default,
    )


# --- Base Marker Classes ---
class immutable:
    """Marker base class to make records immutable after construction."""

    __slots__ = ()


class sealed:
    """Marker base class: no property may be declared once an instance exists."""

    __slots__ = ()


# --- Accessor ---
class PropertyAccessor:
    """Class attribute routing ``record.name`` reads and writes to get/set."""

    __slots__ = ("name",)

    def __init__(self, name: str) -> None:
        self.name = name

    def __get__(self, instance: Any, owner: Any) -> Any:
        if instance is None:
            return owner._registry.get(self.name) or self
        if self.name not in instance._registry:
            raise AttributeError(
                f"'{type(instance).__name__}' has no property '{self.name}'"
            )
        return instance.get(self.name)

    def __set__(self, instance: Any, value: Any) -> None:
        instance.set(self.name, value)


def private_copy(value: Any) -> Any:
    """Return a copy of a mutable value so the record and the caller never share it."""
    if isinstance(value, list):
        return list(value)
    if isinstance(value, (dict, set, bytearray)):
        return copy.copy(value)
    return value


def read_view(value: Any) -> Any:
    """Return a copy of a stored value that cannot mutate the record."""
    if isinstance(value, (list, tuple)):
        return tuple(value)
    if isinstance(value, dict):
        return MappingProxyType(dict(value))
    if isinstance(value, set):
        return frozenset(value)
    if isinstance(value, bytearray):
        return bytes(value)
    return value


# --- Metaclass ---
class RecordMeta(type):
    """Metaclass for Record: gives each class its own registry and collects prop() declarations."""

    def __new__(mcls, name: str, bases: tuple, namespace: dict) -> Any:
        specs = [(k, v) for k, v in namespace.items() if isinstance(v, PropertySpec)]
        for k, _ in specs:
            namespace.pop(k)

        namespace.setdefault("__slots__", ())

        # --- Marker Flags ---
        if any(issubclass(base, immutable) for base in bases):
            namespace.setdefault("frozen", True)
        if any(issubclass(base, sealed) for base in bases):
            namespace.setdefault("sealed", True)

        cls = super().__new__(mcls, name, bases, namespace)
        cls_any: Any = cls

        # Snapshot of the bases' properties; later changes to a base stay there
        registry = PropertyRegistry(name)
        for base in bases:
            if isinstance(base, RecordMeta):
                registry.merge(base._registry)
        cls_any._registry = registry
        if len(registry):
            logger.debug("%s inherits properties %s", name, registry.names())

        hints: Dict[str, Any] = {}
        if any(spec.type_spec is MISSING for _, spec in specs):
            hints = get_type_hints(cls)

        for prop_name, spec in specs:
            type_spec = spec.type_spec
            if type_spec is MISSING:
                type_spec = hints.get(prop_name)
            cls_any.declare_property(prop_name, type_spec, **spec.options)

        return cls


# --- Main Record Class ---
class Record(metaclass=RecordMeta):
    """Base class for records with declared, validated properties."""

    __slots__ = ("_values", "_frozen")

    _registry: PropertyRegistry
    frozen: bool = False
    sealed: bool = False

    def __init__(self, *, frozen: Optional[bool] = None, **values: Any) -> None:
        """Initialize a new record from keyword arguments."""
        self._populate(values, frozen)

    def _populate(self, values: Dict[str, Any], frozen: Optional[bool]) -> None:
        object.__setattr__(self, "_values", {})
        object.__setattr__(self, "_frozen", False)

        registry = type(self)._registry
        if self.sealed:
            registry.close()
        construct(self, registry, values)

        if frozen is None:
            frozen = self.frozen
        object.__setattr__(self, "_frozen", frozen)

    # --- Declaration API ---
    @classmethod
    def declare_property(
        cls,
        name: str,
        type_spec: Any = None,
        *,
        collection: bool = False,
        accepted_values: Optional[Iterable[Any]] = None,
        assertion: Optional[Callable[[Any], Any]] = None,
        allow_nil: bool = False,
        default: Any = MISSING,
    ) -> PropertyDeclaration:
        """Declare, or redeclare, a property on this class only."""
        if cls is Record:
            raise PropertyDeclarationError(
                "Properties must be declared on a Record subclass", name
            )
        cls._check_name(name)
        declaration = cls._registry.register(
            name,
            type_spec,
            collection=collection,
            accepted_values=accepted_values,
            assertion=assertion,
            allow_nil=allow_nil,
            default=default,
        )
        type.__setattr__(cls, name, PropertyAccessor(name))
        return declaration

    @classmethod
    def _check_name(cls, name: str) -> None:
        if not isinstance(name, str):
            return  # the registry reports it
        for klass in cls.__mro__:
            if name in vars(klass) and not isinstance(vars(klass)[name], PropertyAccessor):
                raise PropertyDeclarationError(
                    f"Property '{name}' would shadow {klass.__name__}.{name}", name
                )

    @classmethod
    def declarations(cls) -> Dict[str, PropertyDeclaration]:
        """Ordered mapping of property name to declaration."""
        return cls._registry.declarations()

    @classmethod
    def properties(cls) -> Dict[str, Dict[str, Any]]:
        """Ordered summary: ``{name: {"allow_nil": ..., "default": ...}}``."""
        return cls._registry.describe()

    @classmethod
    def construct(cls, values: Dict[str, Any], frozen: Optional[bool] = None) -> "Record":
        """Create a record from a mapping of property values."""
        instance = cls.__new__(cls)
        instance._populate(dict(values), frozen)
        return instance

    @classmethod
    def builder(cls) -> InstanceBuilder:
        """Create a fluent builder for this record type."""
        return InstanceBuilder(cls)

    # --- Setter Path ---
    def _declaration(self, name: str) -> PropertyDeclaration:
        declaration = self._registry.get(name)
        if declaration is None:
            raise UnknownPropertyError([name], self.__class__.__name__)
        return declaration

    def _check_mutable(self, name: str) -> None:
        if self._frozen:
            raise FrozenInstanceError(self.__class__.__name__, name)

    def _assign(self, declaration: PropertyDeclaration, value: Any) -> None:
        declaration.validate(value)
        if declaration.collection and value is not None:
            value = list(value)
        else:
            value = private_copy(value)
        self._values[declaration.name] = value

    def _stored(self, name: str) -> Any:
        if name in self._values:
            return self._values[name]
        # declared after this instance was built
        declaration = self._declaration(name)
        return declaration.default if declaration.has_default else None

    def get(self, name: str) -> Any:
        """Return a read-only view of a property value."""
        self._declaration(name)
        return read_view(self._stored(name))

    def set(self, name: str, value: Any) -> None:
        """Validate and store a value. The slot is unchanged on failure."""
        self._check_mutable(name)
        self._assign(self._declaration(name), value)

    def append(self, name: str, value: Any) -> None:
        """Validate one element and add it to a collection property."""
        self.extend(name, [value])

    def extend(self, name: str, values: Iterable[Any]) -> None:
        """Validate every element first, then add them all to a collection property."""
        self._check_mutable(name)
        declaration = self._declaration(name)
        if not declaration.collection:
            raise NotACollectionError(name)
        if not is_sequence(values):
            raise NotASequenceError(name, values)

        new_values = list(values)
        declaration.validate_elements(new_values)

        current = self._values.get(name)
        if current is None:
            self._values[name] = new_values
        else:
            current.extend(new_values)

    def __setattr__(self, name: str, value: Any) -> None:
        """Set attribute with validation and frozen check."""
        if name not in self._registry:
            raise UnknownPropertyError([name], self.__class__.__name__)
        self.set(name, value)

    # --- Equality ---
    def __eq__(self, other: object) -> bool:
        """Check equality by comparing all property values."""
        if not isinstance(other, self.__class__):
            return NotImplemented
        return all(
            self._stored(n) == other._stored(n) for n in self._registry.names()
        )

    # --- Hashing ---
    def __hash__(self) -> int:
        """Return hash of record. Only available for frozen instances."""
        if not self._frozen:
            raise TypeError(f"Mutable '{self.__class__.__name__}' is unhashable")
        return hash(tuple(self.get(n) for n in self._registry.names()))

    # --- Conversion ---
    def to_dict(self, recursive: bool = True) -> Dict[str, Any]:
        """Convert the record to a plain dictionary of copied values."""
        d = {}
        for name in self._registry.names():
            value = private_copy(self._stored(name))
            if recursive:
                if isinstance(value, Record):
                    value = value.to_dict(recursive=True)
                elif isinstance(value, list):
                    value = [v.to_dict(recursive=True) if isinstance(v, Record) else v for v in value]
            d[name] = value
        return d

    # --- Copying ---
    def copy(self, **changes: Any) -> "Record":
        """Return a shallow copy, optionally with changes. Everything is re-validated."""
        values = {n: v for n, v in self._values.items() if n in self._registry}
        values.update(changes)
        return self.__class__(frozen=self._frozen, **values)

    def replace(self, **changes: Any) -> "Record":
        """Create a new instance with specified property changes (alias for copy)."""
        return self.copy(**changes)

    def __copy__(self) -> "Record":
        new_obj = self.__class__.__new__(self.__class__)
        object.__setattr__(new_obj, "_values", {
            k: private_copy(v) for k, v in self._values.items()
        })
        object.__setattr__(new_obj, "_frozen", self._frozen)
        return new_obj

    def __deepcopy__(self, memo: Dict[int, Any]) -> "Record":
        """Integration with Python's copy.deepcopy()."""
        new_obj = self.__class__.__new__(self.__class__)
        memo[id(self)] = new_obj
        object.__setattr__(new_obj, "_values", copy.deepcopy(self._values, memo))
        object.__setattr__(new_obj, "_frozen", self._frozen)
        return new_obj

    # --- String Representation ---
    def __repr__(self) -> str:
        """Return a detailed string representation of the record."""
        fields_str = ", ".join(
            f"{n}={self._values.get(n)!r}" for n in self._registry.names()
        )
        return f"{self.__class__.__name__}({fields_str})"

    def get_property_names(self) -> List[str]:
        """Get list of all property names for this record."""
        return self._registry.names()
