"""
Tests for filter parsing, clamping and partial merges.
"""
import pytest
from hamcrest import assert_that, calling, equal_to, raises

from viewer.exceptions import ValidationError
from viewer.filters import (DEFAULT_HOURS, DEFAULT_LIMIT, Filters,
                            coerce_filters, parse_filter_value)


class TestParseFilterValue:
    """Test raw value parsing."""

    @pytest.mark.parametrize('raw,expected', [
        (50, 50),
        ('50', 50),
        (' 72 ', 72),
        (12.9, 12),
        ('12.9', 12),
    ])
    def test_numeric_input(self, raw: object, expected: int) -> None:
        assert_that(parse_filter_value('limit', raw), equal_to(expected))

    @pytest.mark.parametrize('raw', ['', 'abc', None, True, 'nan', 'inf'])
    def test_rejected_input(self, raw: object) -> None:
        assert_that(calling(parse_filter_value).with_args('limit', raw), raises(ValidationError))


class TestCoerceFilters:
    """Test clamping and fallbacks."""

    def test_values_are_clamped(self) -> None:
        assert_that(coerce_filters({'limit': 5}), equal_to({'limit': 10}))
        assert_that(coerce_filters({'limit': 100000}), equal_to({'limit': 1000}))
        assert_that(coerce_filters({'hours': 0}), equal_to({'hours': 1}))
        assert_that(coerce_filters({'hours': 500}), equal_to({'hours': 168}))

    def test_invalid_input_falls_back_to_current(self) -> None:
        current = Filters(limit=250, hours=72)
        assert_that(coerce_filters({'limit': 'abc'}, current), equal_to({'limit': 250}))

    def test_invalid_input_falls_back_to_default(self) -> None:
        assert_that(coerce_filters({'hours': 'abc'}), equal_to({'hours': DEFAULT_HOURS}))

    def test_unknown_filter_is_rejected(self) -> None:
        assert_that(calling(coerce_filters).with_args({'radius': 5}), raises(ValidationError))


class TestFilters:
    """Test the filters value object."""

    def test_merge_is_partial(self) -> None:
        filters = Filters(limit=100, hours=24).merge({'hours': '48'})
        assert_that(filters, equal_to(Filters(limit=100, hours=48)))

    def test_merge_returns_new_value(self) -> None:
        original = Filters()
        merged = original.merge({'limit': 500})
        assert_that(original.limit, equal_to(DEFAULT_LIMIT))
        assert_that(merged.limit, equal_to(500))

    def test_from_settings(self, settings) -> None:
        settings.VIEWER_DEFAULT_LIMIT = 2000
        settings.VIEWER_DEFAULT_HOURS = 12
        assert_that(Filters.from_settings(), equal_to(Filters(limit=1000, hours=12)))
