#!/usr/bin/env python3
"""
Walkthrough of propertylite - declared, validated properties
"""

from typing import List, Optional

from propertylite import (
    NotAcceptedError,
    PropertyError,
    Record,
    RegistryClosedError,
    immutable,
    prop,
    sealed,
)


class Animal:
    def __init__(self, name: str) -> None:
        self.name = name

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})"


class Dog(Animal):
    pass


def demo_declarations():
    """Declare properties in the class body and after the fact"""
    print("=== Declarations ===")

    class Order(Record):
        customer: str = prop()
        fruits = prop(List[str], accepted_values={"apple", "pear"}, default=[])
        note = prop(Optional[str])

    Order.declare_property("quantity", int, assertion=lambda v: v >= 0, default=0)

    order = Order(customer="Ann", fruits=["apple"])
    print(f"order: {order}")
    print(f"properties: {Order.properties()}")

    order.quantity = 3
    order.append("fruits", "pear")
    print(f"after updates: {order}")

    for bad in ({"customer": 1}, {"customer": "Bob", "quantity": -1}, {"customer": "Bob", "misc": 1}):
        try:
            Order.construct(bad)
        except PropertyError as e:
            print(f"✓ {type(e).__name__}: {e}")

    try:
        order.append("fruits", "banana")
    except NotAcceptedError as e:
        print(f"✓ append refused: {e}; fruits still {order.fruits}")

    print("✓ Declarations work\n")


def demo_subtyping():
    """Type checks accept subclasses and refuse base classes"""
    print("=== Subtyping ===")

    class Kennel(Record):
        pet = prop(Animal)

    print(f"Dog in Animal slot: {Kennel(pet=Dog('rex'))}")
    Kennel.declare_property("pet", Dog)
    try:
        Kennel(pet=Animal("generic"))
    except PropertyError as e:
        print(f"✓ {e}")
    print()


def demo_markers():
    """immutable and sealed marker classes"""
    print("=== Markers ===")

    class Point(Record, immutable, sealed):
        x = prop(int)
        y = prop(int, default=0)

    point = Point(x=1)
    print(f"frozen point: {point}, hash={hash(point)}")
    try:
        point.x = 5
    except AttributeError as e:
        print(f"✓ {e}")
    try:
        Point.declare_property("z", int)
    except RegistryClosedError as e:
        print(f"✓ {e}")

    moved = point.replace(y=2)
    print(f"replaced: {moved}")
    print()


if __name__ == "__main__":
    demo_declarations()
    demo_subtyping()
    demo_markers()
