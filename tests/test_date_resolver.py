from datetime import date, datetime

from date_resolver import (
    day_of_week_from_header,
    resolve_date,
    serial_to_date,
    weekday_index,
)

TODAY = date(2025, 6, 15)


def test_serial_follows_epoch_offset():
    # 25569 == 1970-01-01; 45800 - 25569 = 20231 days later
    assert serial_to_date(25569) == date(1970, 1, 1)
    assert serial_to_date(45800) == date(2025, 5, 23)


def test_serial_cell_resolves_with_weekday():
    r = resolve_date(45800, today=TODAY)
    assert r.iso_date == "2025-05-23"
    assert r.day_of_week == "金"


def test_fractional_serial_truncates_to_date():
    assert resolve_date(45800.75, today=TODAY).iso_date == "2025-05-23"


def test_serial_digits_as_text():
    r = resolve_date(" 45800 ", today=TODAY)
    assert (r.iso_date, r.day_of_week) == ("2025-05-23", "金")
    assert resolve_date("45800.5", today=TODAY).iso_date == "2025-05-23"
    # two digits stay a day of month
    assert resolve_date("12", today=TODAY).iso_date == "2025-06-12"


def test_native_date_and_datetime():
    assert resolve_date(date(2025, 6, 2)).iso_date == "2025-06-02"
    r = resolve_date(datetime(2025, 6, 1, 9, 30))
    assert (r.iso_date, r.day_of_week) == ("2025-06-01", "日")


def test_iso_string_kept_verbatim():
    r = resolve_date("2025-06-03")
    assert (r.iso_date, r.day_of_week) == ("2025-06-03", "火")


def test_generic_date_strings():
    assert resolve_date("2025/06/02").iso_date == "2025-06-02"
    assert resolve_date("2025年6月2日").iso_date == "2025-06-02"


def test_day_of_month_uses_current_month():
    assert resolve_date("2日", today=TODAY).iso_date == "2025-06-02"
    assert resolve_date("21", today=TODAY).iso_date == "2025-06-21"


def test_day_of_month_rolls_over():
    # June has 30 days
    assert resolve_date("31日", today=TODAY).iso_date == "2025-07-01"


def test_unparseable_falls_back_to_raw_text():
    r = resolve_date("未定", today=TODAY)
    assert (r.iso_date, r.day_of_week) == ("未定", "")


def test_header_overrides_weekday():
    r = resolve_date("2025-06-02", "(水)")
    assert (r.iso_date, r.day_of_week) == ("2025-06-02", "水")


def test_blank_header_keeps_computed_weekday():
    assert resolve_date("2025-06-02", "").day_of_week == "月"


def test_day_of_week_from_header():
    assert day_of_week_from_header("月") == "月"
    assert day_of_week_from_header("Tue") == "火"
    assert day_of_week_from_header("saturday") == "土"
    assert day_of_week_from_header("") is None
    assert day_of_week_from_header("x") is None


def test_weekday_index_sunday_first():
    assert weekday_index("2025-06-01") == 0
    assert weekday_index("2025-06-07") == 6
    assert weekday_index("出張") is None
