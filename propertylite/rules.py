"""
Compilation of property declarations into validation pipelines.

A pipeline is an ordered tuple of checks. Each check is a small callable
object holding its own parameters, so two properties never share state:

    nil bypass -> type check -> inclusion check -> assertion check

The pipeline stops at the first failing check. Checks after the type check
only ever see type-valid values.
"""

import collections.abc
import logging
import types as _types
from typing import Any, Callable, Iterable, Optional, Tuple, Union, get_args, get_origin

from .exceptions import (
    AssertionFailedError,
    MissingValueError,
    NotAcceptedError,
    NotASequenceError,
    PropertyDeclarationError,
    WrongTypeError,
)

logger = logging.getLogger(__name__)

NoneType = type(None)

# int | str on 3.10+ is not a typing.Union
_UNION_ORIGINS = (Union, getattr(_types, "UnionType", Union))

_COLLECTION_ORIGINS = (list, tuple, collections.abc.Sequence, collections.abc.MutableSequence)


# --- Type Spec Normalisation ---
def is_sequence(value: Any) -> bool:
    """True for list-like values. Strings and bytes are scalars here."""
    return isinstance(value, collections.abc.Sequence) and not isinstance(
        value, (str, bytes, bytearray)
    )


def _union_types(specs: Iterable[Any]) -> Tuple[Optional[tuple], bool]:
    types: list = []
    nil_allowed = False
    for spec in specs:
        if spec is NoneType or spec is None:
            nil_allowed = True
            continue
        members, member_nil = _scalar_types(spec)
        nil_allowed = nil_allowed or member_nil
        if members is None:
            # one member accepts anything, so the union does too
            return None, nil_allowed
        for t in members:
            if t not in types:
                types.append(t)
    if not types:
        return None, nil_allowed
    return tuple(types), nil_allowed


def _scalar_types(spec: Any) -> Tuple[Optional[tuple], bool]:
    if spec is None or spec is object or spec is Any:
        return None, False
    if isinstance(spec, (tuple, list, set, frozenset)):
        return _union_types(spec)
    origin = get_origin(spec)
    if origin in _UNION_ORIGINS:
        return _union_types(get_args(spec))
    if isinstance(origin, type):
        # Dict[str, int] and friends: only the container is checked
        return (origin,), False
    if isinstance(spec, type):
        return (spec,), False
    raise PropertyDeclarationError(f"Unsupported type specification: {spec!r}")


def normalize_type(type_spec: Any) -> Tuple[Optional[tuple], bool, bool]:
    """Split a type spec into (types, collection, nil_allowed).

    ``types`` is a tuple usable with ``isinstance`` or ``None`` for "any".
    ``collection`` is set for sequence specs such as ``list`` or
    ``List[int]``, in which case ``types`` applies to the elements.
    ``nil_allowed`` is set when ``Optional``/``None`` was part of the type spec.

    Where the ``Optional`` sits decides what may be None:

    * ``List[Optional[int]]`` accepts None elements; the list itself is required.
    * ``Optional[List[int]]`` accepts a None list; its elements must be ints.
    * ``Optional[int]`` with ``collection=True`` reads like the second form:
      the flag wraps an already normalised scalar spec, so the whole value may
      be None and None elements are still refused.
    """
    if type_spec in (list, tuple, collections.abc.Sequence):
        return None, True, False

    origin = get_origin(type_spec)
    if origin in _COLLECTION_ORIGINS:
        args = [a for a in get_args(type_spec) if a is not Ellipsis]
        if origin is tuple and len(args) > 1:
            raise PropertyDeclarationError(
                f"Fixed-length tuples are not supported: {type_spec!r}"
            )
        if not args:
            return None, True, False
        types, element_nil = _scalar_types(args[0])
        if element_nil and types is not None:
            # List[Optional[int]] accepts None elements, not a None list
            types = types + (NoneType,)
        return types, True, False

    if origin in _UNION_ORIGINS:
        args = get_args(type_spec)
        non_nil = [a for a in args if a is not NoneType]
        if len(non_nil) == 1 and len(args) == 2:
            # Optional[List[int]] keeps its collection mode
            types, collection, _ = normalize_type(non_nil[0])
            return types, collection, True

    types, nil_allowed = _scalar_types(type_spec)
    return types, False, nil_allowed


# --- Checks ---
class NilCheck:
    """First stage: lets None through when allowed, refuses it otherwise."""

    __slots__ = ("name", "allow_nil", "types")

    def __init__(self, name: str, allow_nil: bool, types: Optional[tuple]) -> None:
        self.name = name
        self.allow_nil = allow_nil
        self.types = types

    def __call__(self, value: Any) -> bool:
        if value is not None:
            return False
        if self.allow_nil:
            return True
        raise MissingValueError(self.name, self.types)


class TypeCheck:
    __slots__ = ("name", "types", "collection")

    def __init__(self, name: str, types: Optional[tuple], collection: bool) -> None:
        self.name = name
        self.types = types
        self.collection = collection

    def matches(self, value: Any) -> bool:
        return self.types is None or isinstance(value, self.types)

    def __call__(self, value: Any) -> None:
        if not self.collection:
            if not self.matches(value):
                raise WrongTypeError(self.name, self.types)
            return
        if not is_sequence(value):
            raise NotASequenceError(self.name, value)
        self.check_elements(value)

    def check_elements(self, values: Iterable[Any]) -> None:
        if self.types is None:
            return
        if not all(self.matches(v) for v in values):
            raise WrongTypeError(self.name, self.types, element=True)


class InclusionCheck:
    __slots__ = ("name", "accepted_values", "collection")

    def __init__(self, name: str, accepted_values: tuple, collection: bool) -> None:
        self.name = name
        self.accepted_values = accepted_values
        self.collection = collection

    def __call__(self, value: Any) -> None:
        if self.collection:
            self.check_elements(value)
        elif value not in self.accepted_values:
            raise NotAcceptedError(self.name, self.accepted_values)

    def check_elements(self, values: Iterable[Any]) -> None:
        if not all(v in self.accepted_values for v in values):
            raise NotAcceptedError(self.name, self.accepted_values, element=True)


class AssertionCheck:
    __slots__ = ("name", "predicate", "collection")

    def __init__(self, name: str, predicate: Callable[[Any], Any], collection: bool) -> None:
        self.name = name
        self.predicate = predicate
        self.collection = collection

    def __call__(self, value: Any) -> None:
        if self.collection:
            self.check_elements(value)
        elif not self.predicate(value):
            raise AssertionFailedError(self.name)

    def check_elements(self, values: Iterable[Any]) -> None:
        if not all(self.predicate(v) for v in values):
            raise AssertionFailedError(self.name, element=True)


# --- Validator ---
class Validator:
    """Ordered, short-circuiting check pipeline for one property."""

    __slots__ = ("name", "collection", "nil_check", "checks")

    def __init__(self, name: str, collection: bool, nil_check: NilCheck, checks: tuple) -> None:
        self.name = name
        self.collection = collection
        self.nil_check = nil_check
        self.checks = checks

    def validate(self, value: Any) -> None:
        """Run the whole pipeline against a value about to be stored."""
        if self.nil_check(value):
            return
        for check in self.checks:
            check(value)

    def validate_elements(self, values: Iterable[Any]) -> None:
        """Run type, inclusion and assertion checks on new collection elements."""
        values = list(values)
        for check in self.checks:
            check.check_elements(values)

    def __repr__(self) -> str:
        stages = ", ".join(type(c).__name__ for c in (self.nil_check,) + self.checks)
        return f"Validator({self.name!r}, [{stages}])"


def compile_rules(
    name: str,
    types: Optional[tuple] = None,
    collection: bool = False,
    accepted_values: Optional[tuple] = None,
    assertion: Optional[Callable[[Any], Any]] = None,
    allow_nil: bool = False,
) -> Validator:
    """Build the validator for one property from already normalised options."""
    if assertion is not None and not callable(assertion):
        raise PropertyDeclarationError(
            f"Assertion for '{name}' must be callable, got {type(assertion).__name__}",
            name,
        )

    checks: list = [TypeCheck(name, types, collection)]
    if accepted_values is not None:
        checks.append(InclusionCheck(name, accepted_values, collection))
    if assertion is not None:
        checks.append(AssertionCheck(name, assertion, collection))

    validator = Validator(name, collection, NilCheck(name, allow_nil, types), tuple(checks))
    logger.debug("Compiled %r", validator)
    return validator
