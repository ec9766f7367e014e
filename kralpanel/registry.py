# kralpanel/registry.py
# -*- coding: utf-8 -*-
"""
Step lookup by name and ordering by declared dependencies.

Each step module decorates its class with StepRegistry.register and lists
the step that must run before it. full_order turns that chain into the run
order used by the provisioner and the CLI's step listing.
"""

from typing import Any, Dict, List, Optional, Set, Type

from kralpanel.base_step import BaseStep


class StepRegistry:
    """Maps step names to step classes."""

    _registry: Dict[str, Type[BaseStep]] = {}

    @classmethod
    def register(cls, name: str, metadata: Optional[Dict[str, Any]] = None):
        """
        Class decorator. Stores the class under name and sets its ``name``
        and ``metadata`` attributes. metadata may carry "dependencies"
        (names of steps that run earlier) and a "description" for listings.

        Raises:
            ValueError: name is taken.
        """

        def decorator(step_class: Type[BaseStep]) -> Type[BaseStep]:
            if name in cls._registry:
                raise ValueError(f"Step with name '{name}' already registered")
            step_class.name = name
            if metadata:
                step_class.metadata = metadata
            cls._registry[name] = step_class
            return step_class

        return decorator

    @classmethod
    def get_step(cls, name: str) -> Type[BaseStep]:
        try:
            return cls._registry[name]
        except KeyError:
            raise KeyError(f"No step registered with name '{name}'") from None

    @classmethod
    def get_step_dependencies(cls, name: str) -> Set[str]:
        metadata = getattr(cls.get_step(name), "metadata", {})
        return set(metadata.get("dependencies", []))

    @classmethod
    def resolve_dependencies(cls, steps: List[str]) -> List[str]:
        """
        Depth-first walk from each requested step. Every step appears after
        the steps it depends on, each exactly once. Dependencies of one step
        are walked in name order so the output never depends on set order.

        Raises:
            KeyError: A step or one of its dependencies is not registered.
            ValueError: The dependencies form a cycle. The message lists it.
        """
        ordered: List[str] = []
        done: Set[str] = set()
        path: List[str] = []

        def walk(step: str) -> None:
            if step in done:
                return
            if step in path:
                cycle = path[path.index(step):] + [step]
                raise ValueError(
                    f"Circular dependency detected: {' -> '.join(cycle)}"
                )
            path.append(step)
            for dependency in sorted(cls.get_step_dependencies(step)):
                walk(dependency)
            path.pop()
            done.add(step)
            ordered.append(step)

        for step in steps:
            walk(step)
        return ordered

    @classmethod
    def full_order(cls) -> List[str]:
        """Run order of every registered step."""
        return cls.resolve_dependencies(sorted(cls._registry))
