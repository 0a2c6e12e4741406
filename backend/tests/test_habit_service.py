"""
Tests for habit progression: creation, completions, streaks, success rate,
neuroplasticity phases and levelling up
"""
import pytest
from datetime import datetime, timedelta
import pytz

from habitcoach.core.exceptions import (
    ConcurrencyConflictError,
    HabitNotFoundError,
    UnsupportedOperationError,
    ValidationError,
)
from habitcoach.services.habits import repository as habit_repository
from habitcoach.services.habits import service as habit_service
from habitcoach.services.habits import setbacks as setback_service
from habitcoach.services.habits.service import (
    calculate_habit_xp,
    calculate_new_streak,
    calculate_success_rate,
    get_challenge_recommendation,
    get_neuroplasticity_phase,
    is_ready_to_advance,
    phase_for_progress,
)
from habitcoach.utils.timezone import to_iso
from tests.helpers import days_ago, make_completion, make_habit_request, seed_completion, seed_habit


def _at(day, hour=12):
    return datetime(2025, 6, day, hour, 0, tzinfo=pytz.UTC)


class TestNeuroplasticityPhase:
    @pytest.mark.parametrize("progress,expected", [
        (0, "Initiering"),
        (19.99, "Initiering"),
        (20, "Etablering"),
        (25, "Etablering"),
        (40, "Stabilisering"),
        (50, "Stabilisering"),
        (66, "Automatisering"),
        (80, "Automatisering"),
        (90, "Neuroplasticitet uppnådd"),
        (100, "Neuroplasticitet uppnådd"),
    ])
    def test_phase_bands(self, progress, expected):
        assert phase_for_progress(progress)["phase"] == expected

    def test_boundary_from_repetitions_is_exact(self):
        phase = get_neuroplasticity_phase({"current_repetitions": 33, "repetition_goal": 50})
        assert phase["progress"] == 66
        assert phase["phase"] == "Automatisering"

    def test_progress_is_capped(self):
        phase = get_neuroplasticity_phase({"current_repetitions": 80, "repetition_goal": 66})
        assert phase["progress"] == 100
        assert phase["description"] == "Permanent neural förändring"

    def test_missing_goal_counts_as_no_progress(self):
        assert get_neuroplasticity_phase({"current_repetitions": 5, "repetition_goal": 0})["phase"] == "Initiering"


class TestStreak:
    def test_first_completion_starts_streak(self):
        assert calculate_new_streak({"streak_current": 0, "frequency": "daily"}, None, _at(2)) == 1

    def test_next_day_extends_daily_streak(self):
        habit = {"streak_current": 3, "frequency": "daily"}
        assert calculate_new_streak(habit, {"completed_at": to_iso(_at(1))}, _at(2)) == 4

    def test_same_day_keeps_streak(self):
        habit = {"streak_current": 3, "frequency": "daily"}
        assert calculate_new_streak(habit, {"completed_at": to_iso(_at(2, 8))}, _at(2, 15)) == 3

    def test_gap_resets_daily_streak(self):
        habit = {"streak_current": 3, "frequency": "daily"}
        assert calculate_new_streak(habit, {"completed_at": to_iso(_at(1))}, _at(4)) == 1

    def test_weekly_streak_uses_week_period(self):
        habit = {"streak_current": 3, "frequency": "weekly"}
        assert calculate_new_streak(habit, {"completed_at": to_iso(_at(1))}, _at(7)) == 4
        assert calculate_new_streak(habit, {"completed_at": to_iso(_at(1))}, _at(10)) == 1


class TestSuccessRate:
    def test_no_completions(self):
        assert calculate_success_rate([], "daily") == 0.0

    def test_uses_rolling_window(self):
        now = _at(30)
        completions = [
            {"completion_quality": 2, "completed_at": to_iso(now - timedelta(days=40))},
            {"completion_quality": 8, "completed_at": to_iso(now - timedelta(days=2))},
            {"completion_quality": 8, "completed_at": to_iso(now - timedelta(days=1))},
        ]
        assert calculate_success_rate(completions, "daily", now=now) == 80.0

    def test_falls_back_to_all_time_mean(self):
        now = _at(30)
        completions = [
            {"completion_quality": 6, "completed_at": to_iso(now - timedelta(days=100))},
            {"completion_quality": 8, "completed_at": to_iso(now - timedelta(days=90))},
        ]
        assert calculate_success_rate(completions, "daily", now=now) == 70.0


class TestProgressionSignals:
    def test_ready_when_success_meets_threshold(self):
        assert is_ready_to_advance({"success_rate": 80, "difficulty": "micro"}) is True

    def test_not_ready_below_threshold(self):
        assert is_ready_to_advance({"success_rate": 60, "difficulty": "micro"}) is False

    def test_not_ready_at_max_difficulty(self):
        assert is_ready_to_advance({"success_rate": 95, "difficulty": "challenging"}) is False
        habit = {"success_rate": 95, "difficulty": "micro", "progression_rules": {"max_difficulty": "micro"}}
        assert is_ready_to_advance(habit) is False

    @pytest.mark.parametrize("success_rate,difficulty,expected", [
        (90, "small", "increase"),
        (90, "challenging", "maintain"),
        (75, "small", "maintain"),
        (60, "small", "decrease"),
        (60, "micro", "maintain"),
    ])
    def test_challenge_recommendation(self, success_rate, difficulty, expected):
        habit = {"success_rate": success_rate, "difficulty": difficulty}
        assert get_challenge_recommendation(habit) == expected

    def test_xp_scales_with_difficulty_streak_and_quality(self):
        assert calculate_habit_xp({"difficulty": "micro", "streak_current": 0}, 10) == 10
        assert calculate_habit_xp({"difficulty": "micro", "streak_current": 5}, 8) == 12
        assert calculate_habit_xp({"difficulty": "large", "streak_current": 50}, 10) == 120


class TestCreateHabit:
    def test_defaults(self, fake_db, client_ctx):
        result = habit_service.create_habit(client_ctx, make_habit_request())

        habit = result["data"]
        assert result["status"] == "success"
        assert habit["user_id"] == "client-1"
        assert habit["repetition_goal"] == 66
        assert habit["consistency_threshold"] == 80
        assert habit["current_repetitions"] == 0
        assert habit["current_commitment"] == "Stretch for two minutes"
        assert habit["status"] == "active"
        assert habit["version"] == 1
        assert habit["progression_rules"]["success_threshold"] == 7
        assert len(fake_db.rows("habits")) == 1

    @pytest.mark.parametrize("goal", [0, -5])
    def test_rejects_non_positive_goal(self, fake_db, client_ctx, goal):
        with pytest.raises(ValidationError):
            habit_service.create_habit(client_ctx, make_habit_request(repetition_goal=goal))
        assert fake_db.rows("habits") == []

    def test_rejects_blank_title(self, fake_db, client_ctx):
        with pytest.raises(ValidationError):
            habit_service.create_habit(client_ctx, make_habit_request(title="   "))


class TestRecordCompletion:
    def test_repetitions_grow_by_one_per_completion(self, fake_db, client_ctx):
        habit = seed_habit(fake_db, current_repetitions=4)

        for expected in range(5, 10):
            result = habit_service.record_completion(client_ctx, habit["id"], make_completion())
            assert result["habit"]["current_repetitions"] == expected

        assert len(fake_db.rows("habit_completions")) == 5

    def test_scenario_formed_habit(self, fake_db, client_ctx):
        habit = habit_service.create_habit(
            client_ctx, make_habit_request(difficulty="micro", repetition_goal=66)
        )["data"]

        for _ in range(66):
            result = habit_service.record_completion(client_ctx, habit["id"], make_completion(quality=9))

        assert result["habit"]["current_repetitions"] == 66
        assert result["phase"]["phase"] == "Neuroplasticitet uppnådd"
        assert result["habit"]["success_rate"] == pytest.approx(90)

    def test_readiness_is_signalled_not_applied(self, fake_db, client_ctx):
        habit = seed_habit(fake_db, success_rate=0)

        result = habit_service.record_completion(client_ctx, habit["id"], make_completion(quality=8))

        assert result["ready_to_advance"] is True
        assert result["habit"]["difficulty"] == "micro"
        assert fake_db.rows("habits")[0]["difficulty"] == "micro"

    def test_streak_extends_from_yesterday(self, fake_db, client_ctx, now):
        habit = seed_habit(fake_db, streak_current=3, streak_longest=3)
        seed_completion(fake_db, habit, days_ago(now, 1))

        result = habit_service.record_completion(client_ctx, habit["id"], make_completion())

        assert result["habit"]["streak_current"] == 4
        assert result["habit"]["streak_longest"] == 4

    def test_streak_resets_after_gap_but_longest_is_kept(self, fake_db, client_ctx, now):
        habit = seed_habit(fake_db, streak_current=3, streak_longest=5)
        seed_completion(fake_db, habit, days_ago(now, 3))

        result = habit_service.record_completion(client_ctx, habit["id"], make_completion())

        assert result["habit"]["streak_current"] == 1
        assert result["habit"]["streak_longest"] == 5

    def test_out_of_range_score_is_rejected_before_writing(self, fake_db, client_ctx):
        habit = seed_habit(fake_db)

        with pytest.raises(ValidationError):
            habit_service.record_completion(client_ctx, habit["id"], make_completion(quality=11))
        with pytest.raises(ValidationError):
            habit_service.record_completion(client_ctx, habit["id"], make_completion(mood_before=0))

        assert fake_db.rows("habit_completions") == []

    def test_other_users_habit_is_not_found(self, fake_db, other_client_ctx):
        habit = seed_habit(fake_db)

        with pytest.raises(HabitNotFoundError):
            habit_service.record_completion(other_client_ctx, habit["id"], make_completion())

    def test_paused_habit_is_not_found(self, fake_db, client_ctx):
        habit = seed_habit(fake_db, status="paused")

        with pytest.raises(HabitNotFoundError):
            habit_service.record_completion(client_ctx, habit["id"], make_completion())

    def test_stale_version_is_rejected(self, fake_db, client_ctx):
        habit = seed_habit(fake_db, version=3)

        with pytest.raises(ConcurrencyConflictError):
            habit_service.record_completion(client_ctx, habit["id"], make_completion(expected_version=2))

        assert fake_db.rows("habit_completions") == []
        assert fake_db.rows("habits")[0]["current_repetitions"] == 0

    def test_concurrent_update_leaves_no_completion_behind(self, fake_db, client_ctx, monkeypatch):
        habit = seed_habit(fake_db, version=3)
        original_create = habit_repository.create_completion

        def create_then_race(data):
            row = original_create(data)
            fake_db.rows("habits")[0]["version"] = 4
            return row

        monkeypatch.setattr(habit_repository, "create_completion", create_then_race)

        with pytest.raises(ConcurrencyConflictError):
            habit_service.record_completion(client_ctx, habit["id"], make_completion(expected_version=3))

        stored = fake_db.rows("habits")[0]
        assert len(fake_db.rows("habit_completions")) == stored["current_repetitions"] == 0

    def test_matching_version_bumps_version(self, fake_db, client_ctx):
        habit = seed_habit(fake_db, version=3)

        result = habit_service.record_completion(client_ctx, habit["id"], make_completion(expected_version=3))

        assert result["habit"]["version"] == 4

    def test_detection_is_handed_to_background_runner(self, fake_db, client_ctx):
        habit = seed_habit(fake_db)
        scheduled = []

        habit_service.record_completion(
            client_ctx, habit["id"], make_completion(),
            run_in_background=lambda fn, *args: scheduled.append((fn, args))
        )

        assert scheduled == [(setback_service.detect_setbacks_quietly, ("client-1",))]

    def test_detection_failure_does_not_fail_completion(self, fake_db, client_ctx, monkeypatch):
        habit = seed_habit(fake_db)

        def boom(*args, **kwargs):
            raise RuntimeError("detector down")

        monkeypatch.setattr(setback_service, "detect_setbacks", boom)

        result = habit_service.record_completion(client_ctx, habit["id"], make_completion())

        assert result["status"] == "success"
        assert result["habit"]["current_repetitions"] == 1


class TestResetAndLevelUp:
    def test_reset_keeps_history(self, fake_db, client_ctx):
        habit = seed_habit(fake_db)
        for _ in range(3):
            habit_service.record_completion(client_ctx, habit["id"], make_completion())

        result = habit_service.reset_habit(client_ctx, habit["id"])

        assert result["data"]["current_repetitions"] == 0
        assert result["data"]["streak_current"] == 0
        assert len(habit_service.list_completions(client_ctx, habit["id"])) == 3

    def test_level_up_advances_one_step(self, fake_db, client_ctx):
        habit = seed_habit(fake_db)

        result = habit_service.level_up_habit(client_ctx, habit["id"], "Walk for ten minutes")

        assert result["data"]["difficulty"] == "small"
        assert result["data"]["current_commitment"] == "Walk for ten minutes"
        assert result["data"]["version"] == 2

    def test_level_up_stops_at_max_difficulty(self, fake_db, client_ctx):
        habit = seed_habit(
            fake_db,
            progression_rules={"success_threshold": 7, "increase_factor": 1.2, "max_difficulty": "small"}
        )

        habit_service.level_up_habit(client_ctx, habit["id"])
        with pytest.raises(UnsupportedOperationError):
            habit_service.level_up_habit(client_ctx, habit["id"])

        assert fake_db.rows("habits")[0]["difficulty"] == "small"

    @pytest.mark.parametrize("operation", [habit_service.reset_habit, habit_service.level_up_habit])
    def test_habit_deleted_mid_update_is_not_found(self, fake_db, client_ctx, monkeypatch, operation):
        habit = seed_habit(fake_db)
        original_get = habit_repository.get_habit_by_id

        def get_then_vanish(habit_id):
            row = original_get(habit_id)
            fake_db.tables["habits"].clear()
            return row

        monkeypatch.setattr(habit_repository, "get_habit_by_id", get_then_vanish)

        with pytest.raises(HabitNotFoundError):
            operation(client_ctx, habit["id"])


class TestQueries:
    def test_list_habits_filters_by_status(self, fake_db, client_ctx):
        seed_habit(fake_db, title="Active one")
        seed_habit(fake_db, title="Paused one", status="paused")
        seed_habit(fake_db, user_id="client-2", title="Someone else's")

        all_habits = habit_service.list_habits(client_ctx)["habits"]
        paused = habit_service.list_habits(client_ctx, status="paused")["habits"]

        assert {h["title"] for h in all_habits} == {"Active one", "Paused one"}
        assert [h["title"] for h in paused] == ["Paused one"]
        assert "phase" in all_habits[0]

    def test_analytics(self, fake_db, client_ctx):
        ready = seed_habit(fake_db, success_rate=90, streak_current=4)
        seed_habit(fake_db, success_rate=50, streak_current=2)
        seed_habit(fake_db, status="completed", success_rate=100)

        analytics = habit_service.get_habit_analytics(client_ctx)

        assert analytics["total_habits"] == 3
        assert analytics["active_habits"] == 2
        assert analytics["completed_habits"] == 1
        assert analytics["total_streak"] == 6
        assert analytics["average_success_rate"] == 70.0
        assert analytics["ready_to_advance"] == [ready["id"]]
