import pytest

from backend.scheduling.slots import fits_working_hours, generate_available_slots, intervals_overlap


def test_generate_available_slots_for_full_working_day() -> None:
    assert generate_available_slots('09:00', '17:00', []) == [
        '09:00',
        '10:00',
        '11:00',
        '12:00',
        '13:00',
        '14:00',
        '15:00',
        '16:00',
    ]


def test_generate_available_slots_excludes_booked_hour() -> None:
    slots = generate_available_slots('09:00', '17:00', [('10:00', 60)])

    assert '10:00' not in slots
    assert '09:00' in slots
    assert '11:00' in slots
    assert len(slots) == 7


def test_generate_available_slots_excludes_every_slot_a_long_booking_touches() -> None:
    slots = generate_available_slots('09:00', '17:00', [('10:30', 90)])

    assert slots == ['09:00', '12:00', '13:00', '14:00', '15:00', '16:00']


def test_generate_available_slots_keeps_adjacent_slots() -> None:
    slots = generate_available_slots('09:00', '12:00', [('09:00', 30), ('11:00', 60)])

    assert slots == ['10:00']


def test_generate_available_slots_drops_partial_trailing_slot() -> None:
    assert generate_available_slots('09:00', '11:30', []) == ['09:00', '10:00']


def test_generate_available_slots_with_window_shorter_than_slot() -> None:
    assert generate_available_slots('09:00', '09:45', []) == []


def test_generate_available_slots_honours_custom_slot_duration() -> None:
    assert generate_available_slots('09:00', '10:30', [('09:30', 30)], slot_duration=30) == ['09:00', '10:00']


def test_generate_available_slots_rejects_malformed_times() -> None:
    with pytest.raises(ValueError):
        generate_available_slots('9', '17:00', [])


@pytest.mark.parametrize(
    ('a', 'b', 'expected'),
    [
        ((540, 600), (600, 660), False),
        ((540, 600), (599, 660), True),
        ((540, 660), (570, 600), True),
        ((600, 660), (540, 600), False),
    ],
)
def test_intervals_overlap(a, b, expected: bool) -> None:
    assert intervals_overlap(*a, *b) is expected


@pytest.mark.parametrize(
    ('session_time', 'duration', 'expected'),
    [
        ('09:00', 60, True),
        ('16:00', 60, True),
        ('16:30', 60, False),
        ('08:30', 60, False),
        ('15:00', 120, True),
    ],
)
def test_fits_working_hours(session_time: str, duration: int, expected: bool) -> None:
    assert fits_working_hours('09:00', '17:00', session_time, duration) is expected
