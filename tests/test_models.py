import pytest

from broadcaster.errors import InvalidArgument, InvalidSchedule
from broadcaster.models import (
    CronSchedule,
    DailyTimesSchedule,
    IntervalSchedule,
    Target,
    TargetKind,
    daily_time_to_cron,
    interval_to_cron,
)


@pytest.mark.parametrize("value", [1, 5, 30, 59])
def test_minute_intervals(value):
    assert interval_to_cron(value, "minutes") == f"*/{value} * * * *"


@pytest.mark.parametrize("value", [1, 6, 23])
def test_hour_intervals(value):
    assert interval_to_cron(value, "hours") == f"0 */{value} * * *"


@pytest.mark.parametrize("value", [1, 7, 30])
def test_day_intervals(value):
    assert interval_to_cron(value, "days") == f"0 0 */{value} * *"


@pytest.mark.parametrize(
    ("value", "unit"),
    [(0, "minutes"), (60, "minutes"), (0, "hours"), (24, "hours"), (0, "days"), (31, "days")],
)
def test_out_of_range_intervals_rejected(value, unit):
    with pytest.raises(InvalidSchedule):
        interval_to_cron(value, unit)


@pytest.mark.parametrize("unit", ["weeks", "seconds", "", "Minutes"])
def test_unknown_unit_rejected(unit):
    with pytest.raises(InvalidSchedule, match="Unsupported interval unit"):
        interval_to_cron(5, unit)


@pytest.mark.parametrize("value", ["5", 2.5, True, None])
def test_non_integer_interval_rejected(value):
    with pytest.raises(InvalidSchedule):
        interval_to_cron(value, "minutes")


def test_daily_time_to_cron_drops_leading_zeros():
    assert daily_time_to_cron("09:05") == "5 9 * * *"
    assert daily_time_to_cron("00:00") == "0 0 * * *"
    assert daily_time_to_cron("23:59") == "59 23 * * *"


@pytest.mark.parametrize("value", ["9:5", "9:05", "24:00", "12:60", "1200", "12:00:00", "", " 12:00"])
def test_daily_time_requires_strict_format(value):
    with pytest.raises(InvalidSchedule):
        daily_time_to_cron(value)


def test_invalid_schedule_is_a_value_error():
    with pytest.raises(ValueError):
        daily_time_to_cron("25:00")


def test_schedule_specs_validate_on_construction():
    assert IntervalSchedule(15, "minutes").to_cron() == ["*/15 * * * *"]
    assert DailyTimesSchedule(("09:00", "18:30")).to_cron() == ["0 9 * * *", "30 18 * * *"]
    assert CronSchedule("0   12 * * 1-5").to_cron() == ["0 12 * * 1-5"]

    with pytest.raises(InvalidSchedule):
        IntervalSchedule(24, "hours")
    with pytest.raises(InvalidSchedule):
        DailyTimesSchedule(())
    with pytest.raises(InvalidSchedule):
        DailyTimesSchedule("09:00")
    with pytest.raises(InvalidSchedule):
        CronSchedule("* * *")


class TestTarget:
    def test_chat_target_uses_numeric_id(self):
        target = Target.chat(12345)
        assert target.kind is TargetKind.CHAT
        assert target.peer == 12345
        assert target.label == "chat 12345"

    def test_group_and_channel_use_handle(self):
        assert Target.group("@my_group").peer == "@my_group"
        assert Target.channel("news").label == "channel @news"

    def test_kind_accepts_plain_strings(self):
        assert Target("channel", handle="news") == Target.channel("news")

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"kind": "chat"},
            {"kind": "chat", "id": 1, "handle": "x"},
            {"kind": "chat", "handle": "x"},
            {"kind": "chat", "id": True},
            {"kind": "group", "id": 5},
            {"kind": "channel", "handle": "@"},
            {"kind": "user", "id": 5},
        ],
    )
    def test_malformed_targets_rejected(self, kwargs):
        with pytest.raises(InvalidArgument):
            Target(**kwargs)

    def test_targets_are_immutable(self):
        target = Target.chat(1)
        with pytest.raises(AttributeError):
            target.id = 2
