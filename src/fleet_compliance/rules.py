# fleet_compliance/rules.py
"""
Regulatory driving-time rule sets per fleet type.

Each fleet type (trucks, taxis, vans) carries its own limits on daily, weekly
and bi-weekly driving time, the continuous driving time after which a break is
mandatory, the minimum break length, and the daily/weekly rest requirements.

Units:
    Driving limits and break durations are minutes. Rest requirements are
    hours, matching how the regulations state them.

The trucks values follow EU Regulation 561/2006 (9h daily, 56h weekly, 90h
over two weeks, 45 min break after 4.5h). Taxi and van values follow local
working-time rules.
"""

from enum import Enum
from types import MappingProxyType
from typing import Any, Final, NamedTuple, Self

from pydantic import BaseModel, ConfigDict, Field, model_validator

__all__: list[str] = [
    'DEFAULT_FLEET_TYPE',
    'FLEET_RULES',
    'FleetRules',
    'FleetType',
    'FleetTypeDescriptor',
    'UnknownFleetTypeError',
    'available_fleet_types',
    'get_fleet_rules',
]


class FleetType(str, Enum):
    """Fleet types with a built-in rule set."""

    TRUCKS = 'trucks'
    TAXIS = 'taxis'
    VANS = 'vans'


class UnknownFleetTypeError(KeyError):
    """Raised when a fleet type has no rule set."""

    def __init__(self, fleet_type: str) -> None:
        valid: str = ', '.join(member.value for member in FleetType)
        super().__init__(f'Unknown fleet type {fleet_type!r}. Valid types: {valid}')
        self.fleet_type: str = fleet_type


class FleetRules(BaseModel):
    """
    Driving and rest limits for one fleet type.

    Attributes:
        fleet_type: The fleet type these rules apply to.
        daily_driving_limit: Maximum driving minutes per day.
        weekly_driving_limit: Maximum driving minutes per week.
        biweekly_driving_limit: Maximum driving minutes over two consecutive weeks.
        break_required_after: Continuous driving minutes after which a break
            is mandatory.
        minimum_break_duration: Minutes of rest that count as a break.
        daily_rest_required: Hours of daily rest.
        weekly_rest_required: Hours of weekly rest.
    """

    model_config = ConfigDict(extra='forbid', frozen=True)

    fleet_type: FleetType
    daily_driving_limit: float = Field(gt=0)
    weekly_driving_limit: float = Field(gt=0)
    biweekly_driving_limit: float = Field(gt=0)
    break_required_after: float = Field(gt=0)
    minimum_break_duration: float = Field(gt=0)
    daily_rest_required: float = Field(gt=0)
    weekly_rest_required: float = Field(gt=0)

    @model_validator(mode='after')
    def validate_limits_nested(self) -> Self:
        """Each driving window must fit inside the next larger one.

        Raises:
            ValueError: If break <= daily <= weekly <= biweekly does not hold.
        """
        ordered: list[tuple[str, float]] = [
            ('break_required_after', self.break_required_after),
            ('daily_driving_limit', self.daily_driving_limit),
            ('weekly_driving_limit', self.weekly_driving_limit),
            ('biweekly_driving_limit', self.biweekly_driving_limit),
        ]
        for (smaller_name, smaller), (larger_name, larger) in zip(
            ordered, ordered[1:], strict=False
        ):
            if smaller > larger:
                raise ValueError(
                    f'{smaller_name} ({smaller}) must not exceed '
                    f'{larger_name} ({larger})'
                )
        return self

    @property
    def daily_rest_minutes(self) -> float:
        """Daily rest requirement in minutes."""
        return self.daily_rest_required * 60

    @property
    def weekly_rest_minutes(self) -> float:
        """Weekly rest requirement in minutes."""
        return self.weekly_rest_required * 60

    def with_overrides(self, **overrides: float) -> 'FleetRules':
        """
        Return a validated copy with selected limits replaced.

        model_copy(update=...) skips validation, so the copy is rebuilt
        through model_validate to keep the ordering invariant enforced.

        Raises:
            ValueError: If the overridden rules violate a constraint.
        """
        if not overrides:
            return self
        merged: dict[str, Any] = {**self.model_dump(), **overrides}
        return FleetRules.model_validate(merged)


FLEET_RULES: Final[MappingProxyType[FleetType, FleetRules]] = MappingProxyType(
    {
        FleetType.TRUCKS: FleetRules(
            fleet_type=FleetType.TRUCKS,
            daily_driving_limit=9 * 60,  # extendable to 10h twice a week
            weekly_driving_limit=56 * 60,
            biweekly_driving_limit=90 * 60,
            break_required_after=4.5 * 60,
            minimum_break_duration=45,  # may be split 15 + 30
            daily_rest_required=11,
            weekly_rest_required=45,
        ),
        FleetType.TAXIS: FleetRules(
            fleet_type=FleetType.TAXIS,
            daily_driving_limit=10 * 60,
            weekly_driving_limit=48 * 60,
            biweekly_driving_limit=96 * 60,
            break_required_after=6 * 60,
            minimum_break_duration=30,
            daily_rest_required=10,
            weekly_rest_required=24,
        ),
        FleetType.VANS: FleetRules(
            fleet_type=FleetType.VANS,
            daily_driving_limit=9 * 60,
            weekly_driving_limit=48 * 60,  # working time directive
            biweekly_driving_limit=96 * 60,
            break_required_after=4.5 * 60,
            minimum_break_duration=30,
            daily_rest_required=9,
            weekly_rest_required=24,
        ),
    }
)

DEFAULT_FLEET_TYPE: Final[FleetType] = FleetType.TRUCKS


class FleetTypeDescriptor(NamedTuple):
    """Display descriptor for a fleet type selector."""

    code: FleetType
    name: str
    icon: str


_FLEET_TYPE_ICONS: Final[dict[FleetType, str]] = {
    FleetType.TRUCKS: '\N{DELIVERY TRUCK}',
    FleetType.TAXIS: '\N{TAXI}',
    FleetType.VANS: '\N{MINIBUS}',
}


def get_fleet_rules(
    fleet_type: FleetType | str = DEFAULT_FLEET_TYPE,
    overrides: dict[str, float] | None = None,
) -> FleetRules:
    """
    Look up the rule set for a fleet type.

    Args:
        fleet_type: FleetType member or its string value.
        overrides: Optional limits replacing the built-in values.

    Returns:
        The (possibly overridden) rule set.

    Raises:
        UnknownFleetTypeError: If the fleet type has no rule set.
        ValueError: If overrides produce an invalid rule set.
    """
    try:
        resolved: FleetType = FleetType(fleet_type)
    except ValueError as lookup_error:
        raise UnknownFleetTypeError(str(fleet_type)) from lookup_error

    rules: FleetRules = FLEET_RULES[resolved]
    return rules.with_overrides(**(overrides or {}))


def available_fleet_types() -> list[FleetTypeDescriptor]:
    """List fleet types in display order with their names and icons."""
    return [
        FleetTypeDescriptor(code=fleet_type, name=fleet_type.value, icon=icon)
        for fleet_type, icon in _FLEET_TYPE_ICONS.items()
    ]
