# -*- coding: utf-8 -*-
"""Base interfaces for execution providers.

An execution provider turns an :class:`ExecutionRecipe` into a fresh, isolated,
single-use execution unit and returns a handle exposing the unit's single
entry operation.
"""

# Standard
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Tuple

# Name of the entry operation every main module must define.
ENTRYPOINT_NAME = "evaluate"


@dataclass(frozen=True)
class ExecutionRecipe:
    """Build recipe of an execution unit.

    Only non-secret configuration may appear in module sources.

    Attributes:
        main_module: Name of the module defining the entry operation.
        modules: Module name to Python source.
        compatibility_flags: Runtime switches the provider must honour.
    """

    main_module: str
    modules: Dict[str, str]
    compatibility_flags: Tuple[str, ...] = ("isolated", "no_site")

    def source_text(self) -> str:
        """Return every module source concatenated, main module first.

        Returns:
            str: Full source text of the unit.
        """
        ordered = [self.main_module] + sorted(name for name in self.modules if name != self.main_module)
        return "\n".join(self.modules[name] for name in ordered if name in self.modules)


class ExecutionHandle(ABC):
    """Handle on a provisioned execution unit."""

    unit_id: str

    @abstractmethod
    async def invoke(self, *args: Any) -> Dict[str, Any]:
        """Call the unit's entry operation.

        Args:
            *args: Call-time arguments, JSON-serializable.

        Returns:
            Dict[str, Any]: The unit's ``{"result", "error", "trace"}`` record.
        """


class ExecutionProvider(ABC):
    """Capability that provisions execution units."""

    @abstractmethod
    async def create(self, unit_id: str, recipe: ExecutionRecipe) -> ExecutionHandle:
        """Provision a unit.

        Args:
            unit_id: Unique identity of the unit.
            recipe: Build recipe.

        Returns:
            ExecutionHandle: Handle on the new unit.
        """

    async def aclose(self) -> None:  # noqa: B027
        """Release provider-wide resources."""
        return None
