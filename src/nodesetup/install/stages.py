"""
Stage definitions.

A flow declares its stages as a ``str`` enumeration; member order is
execution order and member values are what gets written to the progress
marker. ``build_stages`` binds one action to every member and refuses a
plan that leaves a member without an action.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Mapping, Optional, Type

__all__ = ["Stage", "StageAction", "build_stages", "stage_names"]

StageAction = Callable[[], None]


@dataclass(frozen=True)
class Stage:
    """One named, ordered unit of provisioning work."""

    name: str
    action: StageAction
    description: str = ""

    def __str__(self) -> str:
        return self.name


def build_stages(
    stage_enum: Type[Enum],
    actions: Mapping[Enum, StageAction],
    descriptions: Optional[Mapping[Enum, str]] = None,
) -> List[Stage]:
    """
    Bind actions to a stage enumeration, in enumeration order.

    Raises:
        ValueError: If a member has no action or an action is keyed by
            something that is not a member of ``stage_enum``.
    """
    descriptions = descriptions or {}
    foreign = [key for key in actions if not isinstance(key, stage_enum)]
    if foreign:
        raise ValueError(f"actions bound to names outside {stage_enum.__name__}: {foreign}")

    missing = [member.value for member in stage_enum if member not in actions]
    if missing:
        raise ValueError(f"{stage_enum.__name__} stages without an action: {', '.join(missing)}")

    return [
        Stage(
            name=member.value,
            action=actions[member],
            description=descriptions.get(member, ""),
        )
        for member in stage_enum
    ]


def stage_names(stage_enum: Type[Enum]) -> List[str]:
    """Marker values of a stage enumeration, in execution order."""
    return [member.value for member in stage_enum]

