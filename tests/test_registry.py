"""Tests for property registration, inheritance isolation and defaults."""

import threading
from typing import List, Optional

import pytest

from propertylite import (
    MISSING,
    AssertionFailedError,
    MissingValueError,
    PropertyRegistry,
    Record,
    RegistryClosedError,
    WrongTypeError,
    prop,
    sealed,
)


class TestPropertyRegistry:
    """Test the registry on its own."""

    def test_register_preserves_order(self):
        registry = PropertyRegistry("Sample")
        registry.register("b", int)
        registry.register("a", str)

        assert registry.names() == ["b", "a"]
        assert list(registry.declarations()) == ["b", "a"]
        assert len(registry) == 2
        assert "a" in registry
        assert "c" not in registry

    def test_redeclaration_replaces_in_place(self):
        registry = PropertyRegistry("Sample")
        registry.register("a", int, assertion=lambda v: v > 0)
        registry.register("b", int)
        registry.register("a", str, allow_nil=True)

        declaration = registry.get("a")
        assert registry.names() == ["a", "b"]
        assert declaration.types == (str,)
        assert declaration.assertion is None
        assert declaration.allow_nil is True

    def test_unknown_keys(self):
        registry = PropertyRegistry("Sample")
        registry.register("a", int)
        assert registry.unknown(["a", "x", "y"]) == ["x", "y"]
        assert registry.unknown([]) == []

    def test_copy_is_independent(self):
        registry = PropertyRegistry("Parent")
        registry.register("a", int)

        clone = registry.copy("Child")
        clone.register("b", int)
        registry.register("c", int)

        assert registry.names() == ["a", "c"]
        assert clone.names() == ["a", "b"]
        assert clone.owner == "Child"

    def test_closed_registry_refuses_declarations(self):
        registry = PropertyRegistry("Sample")
        registry.register("a", int)
        registry.close()

        assert registry.closed
        with pytest.raises(RegistryClosedError, match="Cannot declare 'b' on Sample"):
            registry.register("b", int)
        assert registry.copy().closed is False

    def test_describe(self):
        registry = PropertyRegistry("Sample")
        registry.register("foo")
        registry.register("bar", allow_nil=True, default=0)

        assert registry.describe() == {
            "foo": {"allow_nil": False, "default": None},
            "bar": {"allow_nil": True, "default": 0},
        }

    def test_concurrent_registration(self):
        registry = PropertyRegistry("Sample")

        def declare(offset):
            for i in range(50):
                registry.register(f"p{offset}_{i}", int)

        threads = [threading.Thread(target=declare, args=(n,)) for n in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(registry) == 200


class TestDefaults:
    """Test default capture and presence handling."""

    def test_missing_sentinel(self):
        assert not MISSING
        assert repr(MISSING) == "MISSING"

    def test_falsy_defaults_are_defaults(self):
        class Flags(Record):
            enabled = prop(bool, default=False)
            retries = prop(int, default=0)
            label = prop(str, default="")
            items = prop(List[int], default=[])

        flags = Flags()
        assert flags.enabled is False
        assert flags.retries == 0
        assert flags.label == ""
        assert flags.items == ()

        declaration = Flags.declarations()["enabled"]
        assert declaration.has_default is True
        assert declaration.default is False

    def test_no_default_is_not_none_default(self):
        class Sample(Record):
            a = prop(int, allow_nil=True)
            b = prop(int, allow_nil=True, default=None)

        declarations = Sample.declarations()
        assert declarations["a"].has_default is False
        assert declarations["b"].has_default is True
        assert Sample().a is None
        assert Sample().b is None

    def test_explicit_nil_overrides_default(self):
        class Sample(Record):
            a = prop(int, allow_nil=True, default=0)

        assert Sample(a=None).a is None
        sample = Sample(a=42)
        sample.a = None
        assert sample.a is None

    def test_default_is_a_snapshot(self):
        shared = ["a"]

        class Tags(Record):
            values = prop(List[str], default=shared)

        shared.append("b")
        assert Tags().values == ("a",)

    def test_instances_do_not_share_default_storage(self):
        class Tags(Record):
            values = prop(List[str], default=["a"])

        first = Tags()
        second = Tags()
        assert first.values == second.values == ("a",)

        first.append("values", "b")
        assert first.values == ("a", "b")
        assert second.values == ("a",)
        assert Tags.declarations()["values"].default == ["a"]

    def test_invalid_default_rejected_at_declaration(self):
        with pytest.raises(WrongTypeError, match="'count'"):

            class Counter(Record):
                count = prop(int, default="zero")

        with pytest.raises(AssertionFailedError, match="'count'"):

            class Positive(Record):
                count = prop(int, assertion=lambda v: v > 0, default=0)

    def test_callable_default_is_not_called(self):
        def handler(value):
            return value

        class Hook(Record):
            callback = prop(default=handler)

        assert Hook().callback is handler

    def test_required_without_default(self):
        class Sample(Record):
            a = prop(int)

        with pytest.raises(MissingValueError):
            Sample()
        with pytest.raises(WrongTypeError):
            Sample(a=None)


class TestInheritance:
    """Each class owns its registry."""

    def test_child_inherits_parent_properties(self):
        class Base(Record):
            a = prop(int)

        class Child(Base):
            b = prop(str)

        assert list(Child.declarations()) == ["a", "b"]
        assert list(Base.declarations()) == ["a"]
        assert Child(a=1, b="x").a == 1

    def test_siblings_are_isolated(self):
        class Base(Record):
            a = prop(int)

        class Left(Base):
            pass

        class Right(Base):
            pass

        Left.declare_property("left_only", int, default=1)
        Right.declare_property("a", str)

        assert list(Left.declarations()) == ["a", "left_only"]
        assert list(Right.declarations()) == ["a"]
        assert list(Base.declarations()) == ["a"]

        assert Left(a=1).left_only == 1
        assert Right(a="one").a == "one"
        with pytest.raises(WrongTypeError):
            Left(a="one")

    def test_late_parent_declaration_does_not_reach_child(self):
        class Base(Record):
            a = prop(int)

        class Child(Base):
            pass

        Base.declare_property("late", int, default=0)

        assert "late" in Base.declarations()
        assert "late" not in Child.declarations()

        child = Child(a=1)
        with pytest.raises(AttributeError):
            child.late

    def test_child_redeclaration_does_not_touch_parent(self):
        class Base(Record):
            a = prop(int)

        class Child(Base):
            a = prop(Optional[str])

        assert Base.declarations()["a"].types == (int,)
        assert Child.declarations()["a"].types == (str,)
        assert Child().a is None
        with pytest.raises(MissingValueError):
            Base()

    def test_property_declared_after_instances(self):
        class Sample(Record):
            a = prop(int)

        early = Sample(a=1)
        Sample.declare_property("b", int, default=5)

        assert early.b == 5
        assert Sample(a=2).b == 5
        assert early == Sample(a=1)
        assert early.to_dict() == {"a": 1, "b": 5}


class TestSealedRecords:
    """Declarations close once the first instance is built."""

    def test_sealed_rejects_late_declarations(self):
        class Order(Record, sealed):
            quantity = prop(int, default=1)

        Order.declare_property("note", str, default="")
        Order()

        with pytest.raises(RegistryClosedError):
            Order.declare_property("late", int)
        assert "late" not in Order.declarations()

    def test_subclass_of_sealed_has_its_own_registry(self):
        class Order(Record, sealed):
            quantity = prop(int, default=1)

        Order()

        class RushOrder(Order):
            pass

        RushOrder.declare_property("deadline", int, default=0)
        assert RushOrder().deadline == 0

        with pytest.raises(RegistryClosedError):
            RushOrder.declare_property("late", int)
