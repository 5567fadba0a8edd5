"""
Lane and Settings Tests

QC tests proving:
1. In-bay capacity follows the number of active bays
2. Lane capacity overrides apply and unknown lanes fail loudly
3. Settings round-trip through JSON and reject bad values
4. Board filters and stats
5. The capacity invariant check fails loudly

Runtime: <1s
"""

import json

import pytest

from bayboard.board.errors import LaneConfigurationError, LaneNotFoundError
from bayboard.board.lanes import (
    board_stats,
    build_board_view,
    build_lanes,
    filter_jobs,
    get_lane,
    occupancy,
)
from bayboard.observability.invariants import (
    CapacityInvariantViolation,
    assert_board_capacity,
)
from bayboard.settings import (
    ENV_SETTINGS_PATH,
    BayConfiguration,
    ConfirmationPolicy,
    DEFAULT_SHOP_SETTINGS,
    ShopSettings,
    load_settings,
)
from bayboard.workflow.models import Job, JobPriority, JobStatus


THREE_BAYS = (
    BayConfiguration(id="bay-1", name="Bay 1"),
    BayConfiguration(id="bay-2", name="Bay 2"),
    BayConfiguration(id="bay-3", name="Bay 3", is_active=False),
)


class TestLanes:

    def test_default_lanes_in_board_order(self):
        lanes = build_lanes()

        assert list(lanes) == list(JobStatus)
        assert lanes[JobStatus.WAITING_PARTS].title == "Waiting on Parts"

    def test_bay_capacity_counts_active_bays_only(self):
        lanes = build_lanes(ShopSettings(bays=THREE_BAYS))

        assert lanes[JobStatus.IN_BAY].max_occupancy == 2
        assert lanes[JobStatus.SCHEDULED].max_occupancy is None

    def test_capacity_override(self):
        lanes = build_lanes(ShopSettings(lane_capacity={"in-bay": 4, "waiting-parts": 6}))

        assert lanes[JobStatus.IN_BAY].max_occupancy == 4
        assert lanes[JobStatus.WAITING_PARTS].max_occupancy == 6

    def test_capacity_for_unknown_lane_rejected(self):
        with pytest.raises(LaneConfigurationError):
            build_lanes(ShopSettings(lane_capacity={"paint-shop": 1}))

    def test_get_lane_missing(self):
        lanes = build_lanes()
        del lanes[JobStatus.INCOMING_CALL]

        with pytest.raises(LaneNotFoundError):
            get_lane(lanes, "incoming-call")

    def test_occupancy_can_exclude_moving_job(self):
        jobs = [Job(id="a", status=JobStatus.IN_BAY), Job(id="b", status=JobStatus.IN_BAY)]

        assert occupancy(jobs, "in-bay") == 2
        assert occupancy(jobs, "in-bay", exclude_job_id="a") == 1


class TestFiltersAndStats:

    @pytest.fixture
    def jobs(self):
        return [
            Job(title="Brake pads", priority=JobPriority.HIGH, invoice_number="INV-100",
                status=JobStatus.IN_BAY),
            Job(title="Oil change", notes="customer waiting for brakes quote",
                status=JobStatus.WAITING_PARTS),
            Job(title="Alignment", priority=JobPriority.LOW, status=JobStatus.COMPLETED),
        ]

    def test_search_matches_title_and_notes(self, jobs):
        matched = filter_jobs(jobs, search="BRAKE")

        assert [job.title for job in matched] == ["Brake pads", "Oil change"]

    def test_priority_filter(self, jobs):
        assert [job.title for job in filter_jobs(jobs, priority="low")] == ["Alignment"]
        assert len(filter_jobs(jobs, priority="all")) == 3

    def test_invoice_filter(self, jobs):
        assert [job.title for job in filter_jobs(jobs, invoice="inv-1")] == ["Brake pads"]

    def test_stats(self, jobs):
        stats = board_stats(jobs)

        assert stats.total == 3
        assert stats.in_bay == 1
        assert stats.waiting_parts == 1
        assert stats.completed == 1
        assert stats.high_priority == 1

    def test_board_view_marks_full_lane(self):
        lanes = build_lanes(ShopSettings(lane_capacity={"in-bay": 1}))
        view = build_board_view(lanes, [Job(status=JobStatus.IN_BAY)])

        in_bay = next(lane for lane in view.lanes if lane.status == JobStatus.IN_BAY)
        assert in_bay.is_full is True
        assert in_bay.label == "In Bay"
        assert in_bay.progress == 60


class TestCapacityInvariant:

    def test_overfull_lane_fails_loudly(self):
        lanes = build_lanes(ShopSettings(lane_capacity={"in-bay": 1}))
        jobs = [Job(status=JobStatus.IN_BAY), Job(status=JobStatus.IN_BAY)]

        with pytest.raises(CapacityInvariantViolation) as exc_info:
            assert_board_capacity(lanes.values(), jobs)

        assert exc_info.value.occupancy == 2

    def test_within_capacity_passes(self):
        lanes = build_lanes()
        assert_board_capacity(lanes.values(), [Job(status=JobStatus.IN_BAY)])


class TestShopSettings:

    def test_defaults(self):
        assert DEFAULT_SHOP_SETTINGS.confirmation_policy == ConfirmationPolicy.SOFT
        assert DEFAULT_SHOP_SETTINGS.bay_capacity == 2

    def test_json_round_trip(self):
        settings = ShopSettings(
            shop_name="Northside Auto",
            bays=THREE_BAYS,
            confirmation_policy=ConfirmationPolicy.STRICT,
            commit_timeout_seconds=5.0,
            lane_capacity={"waiting-parts": 8},
        )

        assert ShopSettings.from_json(settings.to_json()) == settings

    def test_missing_keys_fall_back_to_defaults(self):
        settings = ShopSettings.from_dict({"shop_name": "Bare"})

        assert settings.bays == DEFAULT_SHOP_SETTINGS.bays
        assert settings.commit_timeout_seconds == 10.0

    @pytest.mark.parametrize("data", [
        {"commit_timeout_seconds": 0},
        {"lane_capacity": {"in-bay": -1}},
        {"confirmation_policy": "sometimes"},
    ])
    def test_bad_values_rejected(self, data):
        with pytest.raises(ValueError):
            ShopSettings.from_dict(data)

    def test_load_from_file(self, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text(json.dumps({"shop_name": "File Shop", "confirmation_policy": "strict"}))

        settings = load_settings(str(path))

        assert settings.shop_name == "File Shop"
        assert settings.confirmation_policy == ConfirmationPolicy.STRICT

    def test_load_from_environment(self, tmp_path, monkeypatch):
        path = tmp_path / "settings.json"
        path.write_text(json.dumps({"shop_name": "Env Shop"}))
        monkeypatch.setenv(ENV_SETTINGS_PATH, str(path))

        assert load_settings().shop_name == "Env Shop"

    def test_no_file_means_defaults(self, monkeypatch):
        monkeypatch.delenv(ENV_SETTINGS_PATH, raising=False)

        assert load_settings() is DEFAULT_SHOP_SETTINGS
