"""
Tests for fleet_compliance.rules module.

Tests built-in rule sets, lookup by fleet type, and overrides.
"""

import pytest

from fleet_compliance.rules import (
    DEFAULT_FLEET_TYPE,
    FLEET_RULES,
    FleetRules,
    FleetType,
    UnknownFleetTypeError,
    available_fleet_types,
    get_fleet_rules,
)


class TestBuiltInRuleSets:
    """Test the built-in per-fleet limits."""

    def test_truck_limits(self) -> None:
        """Trucks follow the 9h / 56h / 90h driving limits."""
        rules: FleetRules = FLEET_RULES[FleetType.TRUCKS]

        assert rules.daily_driving_limit == 540  # noqa: PLR2004
        assert rules.weekly_driving_limit == 3360  # noqa: PLR2004
        assert rules.biweekly_driving_limit == 5400  # noqa: PLR2004
        assert rules.break_required_after == 270  # noqa: PLR2004
        assert rules.minimum_break_duration == 45  # noqa: PLR2004
        assert rules.daily_rest_required == 11  # noqa: PLR2004
        assert rules.weekly_rest_required == 45  # noqa: PLR2004

    def test_taxi_limits(self) -> None:
        """Taxis allow 10h daily and a break after 6h."""
        rules: FleetRules = FLEET_RULES[FleetType.TAXIS]

        assert rules.daily_driving_limit == 600  # noqa: PLR2004
        assert rules.weekly_driving_limit == 2880  # noqa: PLR2004
        assert rules.break_required_after == 360  # noqa: PLR2004
        assert rules.minimum_break_duration == 30  # noqa: PLR2004
        assert rules.daily_rest_required == 10  # noqa: PLR2004

    def test_van_limits(self) -> None:
        """Vans have 9h daily and 9h daily rest."""
        rules: FleetRules = FLEET_RULES[FleetType.VANS]

        assert rules.daily_driving_limit == 540  # noqa: PLR2004
        assert rules.weekly_driving_limit == 2880  # noqa: PLR2004
        assert rules.daily_rest_required == 9  # noqa: PLR2004
        assert rules.weekly_rest_required == 24  # noqa: PLR2004

    def test_rest_requirements_in_minutes(self) -> None:
        """Rest hours convert to minutes."""
        rules: FleetRules = FLEET_RULES[FleetType.TRUCKS]

        assert rules.daily_rest_minutes == 660  # noqa: PLR2004
        assert rules.weekly_rest_minutes == 2700  # noqa: PLR2004

    def test_rule_table_is_read_only(self) -> None:
        """The rule table cannot be modified."""
        with pytest.raises(TypeError):
            FLEET_RULES[FleetType.TRUCKS] = FLEET_RULES[FleetType.VANS]  # type: ignore[index]

    def test_default_fleet_type_is_trucks(self) -> None:
        assert DEFAULT_FLEET_TYPE is FleetType.TRUCKS


class TestGetFleetRules:
    """Test rule lookup."""

    def test_lookup_by_string(self) -> None:
        """Should accept the fleet type's string value."""
        assert get_fleet_rules('taxis') is FLEET_RULES[FleetType.TAXIS]

    def test_lookup_by_enum(self) -> None:
        assert get_fleet_rules(FleetType.VANS) is FLEET_RULES[FleetType.VANS]

    def test_default_lookup(self) -> None:
        assert get_fleet_rules().fleet_type is FleetType.TRUCKS

    def test_unknown_fleet_type_raises(self) -> None:
        """Should raise UnknownFleetTypeError, a KeyError."""
        with pytest.raises(UnknownFleetTypeError) as exc_info:
            get_fleet_rules('buses')

        assert exc_info.value.fleet_type == 'buses'
        assert isinstance(exc_info.value, KeyError)

    def test_overrides_replace_limits(self) -> None:
        """Overrides produce a modified copy; the built-in set is untouched."""
        rules: FleetRules = get_fleet_rules('trucks', {'daily_driving_limit': 600})

        assert rules.daily_driving_limit == 600  # noqa: PLR2004
        assert FLEET_RULES[FleetType.TRUCKS].daily_driving_limit == 540  # noqa: PLR2004

    def test_invalid_override_raises(self) -> None:
        """Overrides that break limit nesting are rejected."""
        with pytest.raises(ValueError, match='daily_driving_limit'):
            get_fleet_rules('trucks', {'daily_driving_limit': 4000})


class TestFleetRulesValidation:
    """Test FleetRules model constraints."""

    def test_rejects_break_longer_than_daily_limit(self) -> None:
        with pytest.raises(ValueError, match='break_required_after'):
            FleetRules(
                fleet_type=FleetType.TRUCKS,
                daily_driving_limit=100,
                weekly_driving_limit=1000,
                biweekly_driving_limit=2000,
                break_required_after=200,
                minimum_break_duration=30,
                daily_rest_required=11,
                weekly_rest_required=45,
            )

    def test_rejects_non_positive_limit(self) -> None:
        with pytest.raises(ValueError):
            FLEET_RULES[FleetType.TRUCKS].with_overrides(minimum_break_duration=0)


class TestAvailableFleetTypes:
    """Test fleet type descriptors."""

    def test_lists_all_types_in_order(self) -> None:
        descriptors = available_fleet_types()

        assert [descriptor.code for descriptor in descriptors] == [
            FleetType.TRUCKS,
            FleetType.TAXIS,
            FleetType.VANS,
        ]
        assert all(descriptor.icon for descriptor in descriptors)
