import copy
import keyword
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional

from .exceptions import PropertyDeclarationError, RegistryClosedError
from .rules import Validator, compile_rules, normalize_type

logger = logging.getLogger(__name__)


class _Missing:
    """Sentinel for "no default given". Distinct from None, False and 0."""

    _instance = None

    def __new__(cls) -> "_Missing":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False

    def __copy__(self) -> "_Missing":
        return self

    def __deepcopy__(self, memo: Dict[int, Any]) -> "_Missing":
        return self


MISSING: Any = _Missing()


# --- Declaration ---
@dataclass(frozen=True)
class PropertyDeclaration:
    """Immutable description of one property and its compiled validator."""

    name: str
    type_spec: Any
    types: Optional[tuple]
    collection: bool
    accepted_values: Optional[tuple]
    assertion: Optional[Callable[[Any], Any]]
    allow_nil: bool
    has_default: bool
    default: Any = field(compare=False)
    validator: Validator = field(compare=False, repr=False)

    def validate(self, value: Any) -> None:
        self.validator.validate(value)

    def validate_elements(self, values: Iterable[Any]) -> None:
        self.validator.validate_elements(values)

    def resolve(self, values: Dict[str, Any]) -> Any:
        """Pick the supplied value, else the default, else None."""
        if self.name in values:
            return values[self.name]
        if self.has_default:
            return self.default
        return None


def build_declaration(
    name: str,
    type_spec: Any = None,
    collection: bool = False,
    accepted_values: Optional[Iterable[Any]] = None,
    assertion: Optional[Callable[[Any], Any]] = None,
    allow_nil: bool = False,
    default: Any = MISSING,
) -> PropertyDeclaration:
    """Normalise declaration options and compile them into a declaration."""
    if not isinstance(name, str) or not name.isidentifier() or keyword.iskeyword(name):
        raise PropertyDeclarationError(f"Invalid property name: {name!r}", None)
    if name.startswith("_"):
        raise PropertyDeclarationError(
            f"Property names cannot start with an underscore: {name!r}", name
        )

    types, collection_spec, nil_spec = normalize_type(type_spec)
    collection = collection or collection_spec
    allow_nil = allow_nil or nil_spec

    accepted: Optional[tuple] = None
    if accepted_values is not None:
        if isinstance(accepted_values, (str, bytes)):
            raise PropertyDeclarationError(
                f"Accepted values for '{name}' must be a collection, "
                f"not {type(accepted_values).__name__}",
                name,
            )
        accepted = tuple(accepted_values)
        if isinstance(accepted_values, (set, frozenset)):
            # stable order for error messages
            accepted = tuple(sorted(accepted, key=repr))

    validator = compile_rules(name, types, collection, accepted, assertion, allow_nil)

    has_default = default is not MISSING
    if has_default:
        # snapshot once; instances never see later changes to the caller's object
        default = copy.deepcopy(default)
        if default is not None:
            validator.validate(default)

    return PropertyDeclaration(
        name=name,
        type_spec=type_spec,
        types=types,
        collection=collection,
        accepted_values=accepted,
        assertion=assertion,
        allow_nil=allow_nil,
        has_default=has_default,
        default=default,
        validator=validator,
    )


# --- Registry ---
class PropertyRegistry:
    """Ordered mapping of property name to declaration for one class."""

    def __init__(self, owner: str = "Record") -> None:
        self.owner = owner
        self._declarations: Dict[str, PropertyDeclaration] = {}
        self._lock = threading.RLock()
        self._closed = False

    def register(self, name: str, type_spec: Any = None, **options: Any) -> PropertyDeclaration:
        """Add or replace a declaration. A replaced name keeps its position."""
        declaration = build_declaration(name, type_spec, **options)
        self.add(declaration)
        return declaration

    def add(self, declaration: PropertyDeclaration) -> None:
        with self._lock:
            if self._closed:
                raise RegistryClosedError(declaration.name, self.owner)
            replaced = declaration.name in self._declarations
            self._declarations[declaration.name] = declaration
        logger.debug(
            "%s property '%s' on %s",
            "Redeclared" if replaced else "Declared",
            declaration.name,
            self.owner,
        )

    def declarations(self) -> Dict[str, PropertyDeclaration]:
        with self._lock:
            return dict(self._declarations)

    def names(self) -> List[str]:
        with self._lock:
            return list(self._declarations)

    def get(self, name: str) -> Optional[PropertyDeclaration]:
        return self._declarations.get(name)

    def unknown(self, keys: Iterable[str]) -> List[str]:
        """Return the keys that have no declaration, in the order given."""
        return [k for k in keys if k not in self._declarations]

    def describe(self) -> Dict[str, Dict[str, Any]]:
        return {
            name: {
                "allow_nil": d.allow_nil,
                "default": d.default if d.has_default else None,
            }
            for name, d in self.declarations().items()
        }

    # --- Inheritance & Sealing ---
    def copy(self, owner: Optional[str] = None) -> "PropertyRegistry":
        """Independent registry holding the same (immutable) declarations."""
        clone = PropertyRegistry(owner or self.owner)
        with self._lock:
            clone._declarations = dict(self._declarations)
        return clone

    def merge(self, other: "PropertyRegistry") -> None:
        """Take over every declaration of another registry, in its order."""
        for declaration in other.declarations().values():
            self.add(declaration)

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        with self._lock:
            if not self._closed:
                self._closed = True
                logger.debug("Registry of %s closed for modification", self.owner)

    # --- Container Protocol ---
    def __contains__(self, name: object) -> bool:
        return name in self._declarations

    def __iter__(self) -> Iterator[PropertyDeclaration]:
        return iter(self.declarations().values())

    def __len__(self) -> int:
        return len(self._declarations)

    def __repr__(self) -> str:
        return f"PropertyRegistry({self.owner}, {self.names()!r})"
