"""
PropertyLite - declarative, validated properties for small Python classes

Each property gets a type, an optional set of accepted values and an optional
assertion. Every assignment, the keyword initializer included, runs the same
checks in the same order: nil bypass, type, inclusion, assertion.

Example:
    from typing import List
    from propertylite import Record, prop

    class Basket(Record):
        owner: str = prop()
        fruits = prop(List[str], accepted_values={"apple", "pear"}, default=[])
        quantity = prop(int, assertion=lambda v: v > 0, default=1)

    basket = Basket(owner="ann", fruits=["apple"])
    basket.append("fruits", "pear")
    basket.fruits  # ('apple', 'pear')
    Basket(owner="bob", fruits=["banana"])  # raises NotAcceptedError
"""

__version__ = "1.0.0"
__author__ = "Your Name"
__email__ = "your.email@example.com"
__license__ = "MIT"

from .builder import InstanceBuilder
from .core import (
    PropertyAccessor,
    Record,
    RecordMeta,
    immutable,
    prop,
    read_view,
    sealed,
)
from .exceptions import (
    AssertionFailedError,
    FrozenInstanceError,
    MissingValueError,
    NotAcceptedError,
    NotACollectionError,
    NotASequenceError,
    PropertyDeclarationError,
    PropertyError,
    RegistryClosedError,
    UnknownPropertyError,
    WrongTypeError,
)
from .registry import MISSING, PropertyDeclaration, PropertyRegistry, build_declaration
from .rules import Validator, compile_rules, normalize_type

__all__ = [
    "Record",
    "RecordMeta",
    "InstanceBuilder",
    "PropertyAccessor",
    "PropertyDeclaration",
    "PropertyRegistry",
    "Validator",
    "MISSING",
    "build_declaration",
    "compile_rules",
    "normalize_type",
    "immutable",
    "prop",
    "read_view",
    "sealed",
    "PropertyError",
    "PropertyDeclarationError",
    "RegistryClosedError",
    "UnknownPropertyError",
    "WrongTypeError",
    "MissingValueError",
    "NotASequenceError",
    "NotACollectionError",
    "NotAcceptedError",
    "AssertionFailedError",
    "FrozenInstanceError",
]
