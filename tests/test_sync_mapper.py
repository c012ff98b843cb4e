"""Tests for color, priority and payload mapping."""

from __future__ import annotations

import pytest

from todoist_sync_server.sync.mapper import (
    REMOTE_COLOR_MAP,
    build_task_payload,
    format_due_date,
    map_local_priority_to_remote,
    map_remote_color_to_local,
    map_remote_priority_to_local,
)
from todoist_sync_server.sync.models import Task
from todoist_sync_server.validators import LOCAL_COLORS


def _task(**overrides) -> Task:
    defaults = {
        "id": "local-1",
        "text": "Write report",
        "project_id": "p1",
        "created_at": "2026-01-01T00:00:00+00:00",
        "updated_at": "2026-01-01T00:00:00+00:00",
    }
    defaults.update(overrides)
    return Task(**defaults)


class TestColorMapping:
    @pytest.mark.parametrize(
        "remote, local",
        [
            ("berry_red", "red"),
            ("olive_green", "green"),
            ("teal", "blue"),
            ("charcoal", "gray"),
            ("pink", "purple"),
            ("Grey", "gray"),
            ("31", "orange"),
            (36, "pink"),
        ],
    )
    def test_known_values(self, remote, local):
        assert map_remote_color_to_local(remote) == local

    @pytest.mark.parametrize("value", ["", "sky_blue", "99", None, True, 12])
    def test_unknown_values_fall_back_to_blue(self, value):
        assert map_remote_color_to_local(value) == "blue"

    def test_numeric_and_named_pink_brown_differ(self):
        assert map_remote_color_to_local("36") == "pink"
        assert map_remote_color_to_local("pink") == "purple"
        assert map_remote_color_to_local("37") == "brown"
        assert map_remote_color_to_local("brown") == "gray"

    def test_every_mapped_color_is_a_local_color(self):
        assert set(REMOTE_COLOR_MAP.values()) <= LOCAL_COLORS


class TestPriorityMapping:
    def test_remote_urgent_is_local_highest(self):
        assert map_remote_priority_to_local(4) == 1
        assert map_remote_priority_to_local(1) == 4

    @pytest.mark.parametrize("priority", [1, 2, 3, 4])
    def test_mapping_is_an_involution(self, priority):
        assert map_local_priority_to_remote(map_remote_priority_to_local(priority)) == priority

    @pytest.mark.parametrize("priority", [0, 5, -1, "2", 2.0, True])
    def test_out_of_range_raises(self, priority):
        with pytest.raises(ValueError):
            map_local_priority_to_remote(priority)


class TestFormatDueDate:
    def test_date_time_is_truncated(self):
        assert format_due_date("2026-05-04T10:00:00Z") == "2026-05-04"

    def test_plain_date_unchanged(self):
        assert format_due_date("2026-05-04") == "2026-05-04"

    def test_empty_is_none(self):
        assert format_due_date("") is None
        assert format_due_date(None) is None


class TestBuildTaskPayload:
    def test_payload_fields(self):
        payload = build_task_payload(_task(priority=1, notes="Q3 numbers"), "r-99")

        assert payload == {
            "content": "Write report",
            "project_id": "r-99",
            "description": "Q3 numbers",
            "priority": 4,
        }

    def test_due_date_included_when_set(self):
        payload = build_task_payload(_task(due_date="2026-05-04T10:00:00Z"), "r-99")
        assert payload["due_date"] == "2026-05-04"

    def test_completion_is_not_part_of_payload(self):
        payload = build_task_payload(_task(completed=True), "r-99")
        assert "completed" not in payload
        assert "checked" not in payload
