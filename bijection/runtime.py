"""Bijection runtime — in-process converters built from arm-lists.

A converter is an ordered list of (matcher, constructor) pairs tried top to
bottom, the same way the generated `match` statement would run. Matching
follows Python's structural pattern rules for the shapes a clause may use.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping

from .ast import (
    Arm,
    ArmList,
    Binding,
    Literal,
    Normalized,
    Shape,
    Struct,
    TypeRef,
    Variant,
)
from .emit import conversion_names, is_attachable, render_shape


class BijectionRuntimeError(Exception):
    """Base class for errors raised while building or running a converter."""


class ResolutionError(BijectionRuntimeError):
    """A dotted name in a clause does not resolve, or is not a class where one is required."""


class UnmatchedValueError(BijectionRuntimeError, ValueError):
    """No arm matched the value. Only reachable when the clauses are not total."""

    def __init__(self, type_name: str, value: object):
        self.type_name: str = type_name
        self.value: object = value
        super().__init__(
            "no bijection arm matches " + type_name + " value: " + repr(value)
        )


# Builtins whose class pattern takes one positional sub-pattern matching the subject itself
_SELF_MATCHING: tuple[type, ...] = (
    bool,
    bytearray,
    bytes,
    dict,
    float,
    frozenset,
    int,
    list,
    set,
    str,
    tuple,
)

_MISSING = object()


def resolve(path: list[str], namespace: Mapping[str, object]) -> object:
    """Look up `a.b.c` as namespace["a"].b.c."""
    if path[0] not in namespace:
        raise ResolutionError("name '" + path[0] + "' is not defined")
    obj = namespace[path[0]]
    for i in range(1, len(path)):
        nxt = getattr(obj, path[i], _MISSING)
        if nxt is _MISSING:
            raise ResolutionError(
                "'" + ".".join(path[:i]) + "' has no attribute '" + path[i] + "'"
            )
        obj = nxt
    return obj


# ============================================================
# RESOLVED SHAPES
# ============================================================


class _Node:
    """A shape with every dotted path already resolved."""

    def match(self, value: object, env: dict[str, object]) -> bool:
        raise NotImplementedError

    def build(self, env: dict[str, object]) -> object:
        raise NotImplementedError


class _LiteralNode(_Node):
    def __init__(self, value: object):
        self.value = value

    def match(self, value: object, env: dict[str, object]) -> bool:
        if self.value is None or self.value is True or self.value is False:
            return value is self.value
        return value == self.value

    def build(self, env: dict[str, object]) -> object:
        return self.value


class _CaptureNode(_Node):
    def __init__(self, name: str):
        self.name = name

    def match(self, value: object, env: dict[str, object]) -> bool:
        env[self.name] = value
        return True

    def build(self, env: dict[str, object]) -> object:
        return env[self.name]


class _ValueNode(_Node):
    def __init__(self, obj: object):
        self.obj = obj

    def match(self, value: object, env: dict[str, object]) -> bool:
        return value == self.obj

    def build(self, env: dict[str, object]) -> object:
        return self.obj


class _ClassNode(_Node):
    def __init__(
        self,
        cls: type,
        positional: list[_Node],
        keywords: list[tuple[str, _Node]],
        label: str,
    ):
        self.cls = cls
        self.positional = positional
        self.keywords = keywords
        self.label = label

    def match(self, value: object, env: dict[str, object]) -> bool:
        if not isinstance(value, self.cls):
            return False
        if len(self.positional) > 0:
            match_args = getattr(self.cls, "__match_args__", None)
            # Builtin subclasses self-match unless they set __match_args__
            if match_args is None and issubclass(self.cls, _SELF_MATCHING):
                if len(self.positional) != 1:
                    raise BijectionRuntimeError(
                        self.label + "() accepts 1 positional sub-pattern ("
                        + str(len(self.positional))
                        + " given)"
                    )
                return self.positional[0].match(value, env)
            if match_args is None:
                match_args = ()
            if len(self.positional) > len(match_args):
                raise BijectionRuntimeError(
                    self.label
                    + "() accepts "
                    + str(len(match_args))
                    + " positional sub-pattern(s) ("
                    + str(len(self.positional))
                    + " given)"
                )
            for name, node in zip(match_args, self.positional):
                attr = getattr(value, name, _MISSING)
                if attr is _MISSING or not node.match(attr, env):
                    return False
        for name, node in self.keywords:
            attr = getattr(value, name, _MISSING)
            if attr is _MISSING or not node.match(attr, env):
                return False
        return True

    def build(self, env: dict[str, object]) -> object:
        args = [node.build(env) for node in self.positional]
        kwargs = {name: node.build(env) for name, node in self.keywords}
        return self.cls(*args, **kwargs)


def _resolve_shape(shape: Shape, namespace: Mapping[str, object]) -> _Node:
    if isinstance(shape, Literal):
        return _LiteralNode(shape.value)
    if isinstance(shape, Binding):
        return _CaptureNode(shape.name)
    if isinstance(shape, Variant):
        obj = resolve(shape.path, namespace)
        if shape.args is None:
            return _ValueNode(obj)
        cls = _require_class(obj, shape.name)
        positional = [_resolve_shape(a, namespace) for a in shape.args]
        return _ClassNode(cls, positional, [], shape.name)
    if isinstance(shape, Struct):
        cls = _require_class(resolve(shape.path, namespace), shape.name)
        keywords = [(f.name, _resolve_shape(f.shape, namespace)) for f in shape.fields]
        return _ClassNode(cls, [], keywords, shape.name)
    raise ResolutionError("shape cannot be resolved: " + render_shape(shape))


def _require_class(obj: object, name: str) -> type:
    if not isinstance(obj, type):
        raise ResolutionError("'" + name + "' is not a class")
    return obj


# ============================================================
# CONVERTERS
# ============================================================


class Converter:
    """One direction of a bijection: ordered (matcher, constructor) arms."""

    def __init__(self, arms: ArmList, namespace: Mapping[str, object], name: str):
        if not arms.closed:
            raise ValueError("arm-list must be closed before building a converter")
        self.name: str = name
        self.source_type: TypeRef = arms.source_type
        self.target_type: TypeRef = arms.target_type
        self._arms: list[tuple[_Node, _Node, Arm]] = []
        for arm in arms:
            self._arms.append(
                (
                    _resolve_shape(arm.pattern, namespace),
                    _resolve_shape(arm.value, namespace),
                    arm,
                )
            )

    def __len__(self) -> int:
        return len(self._arms)

    def __call__(self, value: object) -> object:
        for matcher, constructor, _ in self._arms:
            env: dict[str, object] = {}
            if matcher.match(value, env):
                return constructor.build(env)
        raise UnmatchedValueError(self.source_type.text, value)

    def arm_for(self, value: object) -> int | None:
        """Clause index of the arm that would handle value, or None."""
        for matcher, _, arm in self._arms:
            if matcher.match(value, {}):
                return arm.clause
        return None


class Bijection:
    """Forward and backward converters built from one declaration."""

    def __init__(self, normalized: Normalized, namespace: Mapping[str, object]):
        decl = normalized.declaration
        self.side_a_type: TypeRef = decl.side_a_type
        self.side_b_type: TypeRef = decl.side_b_type
        self.namespace: Mapping[str, object] = namespace
        forward_name, backward_name, forward_attr, backward_attr = conversion_names(
            decl.side_a_type, decl.side_b_type
        )
        self.forward: Converter = Converter(normalized.forward, namespace, forward_name)
        self.backward: Converter = Converter(
            normalized.backward, namespace, backward_name
        )
        self._attrs: tuple[str, str] = (forward_attr, backward_attr)

    def attach(self) -> None:
        """Install `B.from_a` and `A.from_b` static methods, like the emitted code."""
        self._attach_one(self.side_b_type, self._attrs[0], self.forward)
        self._attach_one(self.side_a_type, self._attrs[1], self.backward)

    def _attach_one(
        self, target: TypeRef, attr: str, fn: Callable[[object], object]
    ) -> None:
        if not is_attachable(target):
            return
        cls = resolve(target.path, self.namespace)
        try:
            setattr(cls, attr, staticmethod(fn))
        except (AttributeError, TypeError) as e:
            raise ResolutionError(
                "cannot attach converter to '" + target.text + "': " + str(e)
            ) from e
