from __future__ import annotations

from typing import Any, Optional

from .values import UNDEFINED


class Binding:
    __slots__ = ("value", "kind", "initialized")

    def __init__(self, value: Any = UNDEFINED, kind: str = "var", initialized: bool = True) -> None:
        self.value = value
        self.kind = kind
        self.initialized = initialized


class Frame:
    """Per-call state that arrow functions share with their enclosing function."""

    __slots__ = ("this", "function", "home", "new_target", "cls")

    def __init__(
        self,
        this: Any = UNDEFINED,
        function: Any = None,
        home: Any = None,
        new_target: Any = UNDEFINED,
        cls: Any = None,
    ) -> None:
        self.this = this
        self.function = function
        self.home = home
        self.new_target = new_target
        self.cls = cls


class Scope:
    __slots__ = ("vars", "parent", "frame")

    def __init__(self, parent: Optional["Scope"] = None, frame: Optional[Frame] = None) -> None:
        self.vars: dict[str, Binding] = {}
        self.parent = parent
        self.frame = frame if frame is not None else (parent.frame if parent is not None else Frame())

    def lookup(self, name: str) -> Optional[Binding]:
        scope: Optional[Scope] = self
        while scope is not None:
            binding = scope.vars.get(name)
            if binding is not None:
                return binding
            scope = scope.parent
        return None

    def declare(self, name: str, kind: str, value: Any = UNDEFINED, initialized: bool = True) -> Binding:
        binding = Binding(value, kind, initialized)
        self.vars[name] = binding
        return binding

    def snapshot(self) -> dict[str, tuple[Binding, Any, str, bool]]:
        return {name: (b, b.value, b.kind, b.initialized) for name, b in self.vars.items()}

    def restore(self, snap: dict[str, tuple[Binding, Any, str, bool]]) -> None:
        self.vars = {}
        for name, (binding, value, kind, initialized) in snap.items():
            binding.value = value
            binding.kind = kind
            binding.initialized = initialized
            self.vars[name] = binding


__all__ = ["Binding", "Frame", "Scope"]
