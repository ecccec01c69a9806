"""
Tests for the sidebar and header view models and time formatting.
"""
from datetime import datetime, timedelta
from datetime import timezone as dt_timezone

from hamcrest import (assert_that, contains_exactly, equal_to, has_item,
                      has_length, is_, is_not, none)

from conftest import location_payload, make_location, make_machine
from viewer.filters import Filters
from viewer.formatting import format_time_ago, status_color
from viewer.records import Location, Stats
from viewer.sidebar import (DetailField, location_detail, render_header,
                            render_sidebar)
from viewer.state import ViewerSnapshot

NOW = datetime(2024, 1, 15, 12, 0, tzinfo=dt_timezone.utc)


class TestTimeFormatting:
    """Test relative time strings and status colors."""

    def test_format_time_ago(self) -> None:
        assert_that(format_time_ago(NOW - timedelta(seconds=20), NOW), equal_to('Just now'))
        assert_that(format_time_ago(NOW - timedelta(minutes=5), NOW), equal_to('5 min ago'))
        assert_that(format_time_ago(NOW - timedelta(hours=3), NOW), equal_to('3h ago'))
        assert_that(format_time_ago(NOW - timedelta(hours=30), NOW), equal_to('Yesterday'))
        assert_that(format_time_ago(NOW - timedelta(days=4), NOW), equal_to('4 days ago'))
        assert_that(format_time_ago(None, NOW), equal_to('Unknown'))

    def test_status_color(self) -> None:
        assert_that(status_color(NOW - timedelta(minutes=10), NOW), equal_to('success'))
        assert_that(status_color(NOW - timedelta(hours=3), NOW), equal_to('warning'))
        assert_that(status_color(NOW - timedelta(hours=8), NOW), equal_to('error'))
        assert_that(status_color(None, NOW), equal_to('error'))


class TestRenderSidebar:
    """Test the sidebar model."""

    def test_recent_title_and_rows(self) -> None:
        locations = (
            make_location(1, age=timedelta(minutes=5), now=NOW),
            make_location(2, age=timedelta(hours=2), now=NOW, city=None, country=None),
        )
        model = render_sidebar(ViewerSnapshot(locations=locations), now=NOW)

        assert_that(model.locations_title, equal_to('Locations recent (2)'))
        assert_that([row.place for row in model.locations],
                    contains_exactly('Lima, Peru', 'Unknown city, Unknown country'))
        assert_that([row.time_ago for row in model.locations], contains_exactly('5 min ago', '2h ago'))
        assert_that(model.locations[0].coordinates, equal_to(
            f"{locations[0].latitude:.4f}, {locations[0].longitude:.4f}"
        ))
        assert_that(model.show_all_button, equal_to(False))

    def test_machine_scoped_title(self) -> None:
        snapshot = ViewerSnapshot(locations=(make_location(1),), selected_machine='LAPTOP-1')
        model = render_sidebar(snapshot, now=NOW)

        assert_that(model.locations_title, equal_to('Locations for LAPTOP-1 (1)'))
        assert_that(model.show_all_button, equal_to(True))

    def test_empty_messages(self) -> None:
        scoped = render_sidebar(
            ViewerSnapshot(selected_machine='LAPTOP-1', filters=Filters(limit=100, hours=48)), now=NOW
        )
        unscoped = render_sidebar(ViewerSnapshot(), now=NOW)
        loading = render_sidebar(ViewerSnapshot(loading=True), now=NOW)

        assert_that(scoped.empty_message, equal_to('No locations for LAPTOP-1 in the last 48 hours'))
        assert_that(unscoped.empty_message, equal_to('No locations available'))
        assert_that(loading.empty_message, is_(none()))

    def test_machine_rows_and_stats(self) -> None:
        machines = (make_machine('LAPTOP-1', count=3), make_machine('PHONE-2', count=9))
        snapshot = ViewerSnapshot(
            machines=machines,
            selected_machine='PHONE-2',
            stats=Stats(total_locations=12, unique_machines=2),
        )
        model = render_sidebar(snapshot)

        assert_that([row.selected for row in model.machines], contains_exactly(False, True))
        assert_that([row.count for row in model.machines], contains_exactly(3, 9))
        assert_that(model.total_locations, equal_to(12))
        assert_that(model.unique_machines, equal_to(2))

    def test_stats_unknown_before_load(self) -> None:
        model = render_sidebar(ViewerSnapshot(), now=NOW)
        assert_that(model.total_locations, is_(none()))

    def test_error_is_shown(self) -> None:
        model = render_sidebar(ViewerSnapshot(error='Error fetching locations: down'), now=NOW)
        assert_that(model.error, equal_to('Error fetching locations: down'))

    def test_filter_controls(self) -> None:
        model = render_sidebar(ViewerSnapshot(filters=Filters(limit=250, hours=72)), now=NOW)
        assert_that((model.filters.limit, model.filters.hours), equal_to((250, 72)))
        assert_that(model.filters.limit_range, equal_to((10, 1000)))
        assert_that(model.filters.hours_range, equal_to((1, 168)))


class TestLocationDetail:
    """Test the selected-location detail block."""

    def test_optional_fields_only_when_present(self) -> None:
        bare = make_location(1)
        labels = [field.label for field in location_detail(bare)]
        assert_that(labels, contains_exactly('Machine', 'User', 'Timestamp', 'Source'))

        full = Location.from_payload(location_payload(1, accuracy=12.5, public_ip='203.0.113.7'))
        details = location_detail(full)
        assert_that(details, has_item(DetailField('Accuracy', '12.5m')))
        assert_that(details, has_item(DetailField('Public IP', '203.0.113.7')))

    def test_no_selection(self) -> None:
        assert_that(location_detail(None), equal_to(()))

    def test_selected_row_and_detail(self) -> None:
        locations = (make_location(1), make_location(2))
        model = render_sidebar(ViewerSnapshot(locations=locations, selected_location=locations[1]))

        assert_that([row.selected for row in model.locations], contains_exactly(False, True))
        assert_that(model.detail, is_not(equal_to(())))
        assert_that(model.detail, has_length(4))

    def test_rows_without_id_are_not_all_selected(self) -> None:
        locations = tuple(
            Location.from_payload({'machine_name': 'LAPTOP-1', 'latitude': 1.0 + i, 'longitude': 2.0})
            for i in range(2)
        )
        model = render_sidebar(ViewerSnapshot(locations=locations, selected_location=locations[0]))

        assert_that([row.selected for row in model.locations], contains_exactly(True, False))


class TestRenderHeader:
    def test_all_machines(self) -> None:
        header = render_header(ViewerSnapshot(locations=(make_location(1),)))
        assert_that((header.scope, header.location_count), equal_to(('All machines', 1)))

    def test_selected_machine(self) -> None:
        header = render_header(ViewerSnapshot(selected_machine='LAPTOP-1'))
        assert_that((header.scope, header.location_count), equal_to(('LAPTOP-1', 0)))
