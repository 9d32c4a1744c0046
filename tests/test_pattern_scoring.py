import pytest

from attendance_fact import AttendanceFact
from pattern_scoring import (
    MATCHED,
    NO_MATCH,
    NO_REGISTRATION,
    PARTIAL_MATCH,
    ObservedDay,
    classify,
    day_score,
    match_message,
    match_person,
    match_with_patterns,
    pattern_score,
)
from registry import WorkPattern

HAYADE = WorkPattern(name="早出", work_location="河口湖駅", train_commute="possible")


@pytest.mark.parametrize("day,expected", [
    (ObservedDay("2025-06-02", "富士山駅", "早出"), 1.0),
    (ObservedDay("2025-06-02", "富士山駅", "早出A"), 0.8),
    (ObservedDay("2025-06-02", "河口湖駅", "泊"), 0.6),
    (ObservedDay("2025-06-02", "河口湖", "泊"), 0.4),
    (ObservedDay("2025-06-02", "大月駅", "日勤"), 0.0),
])
def test_day_score_ladder(day, expected):
    assert day_score(day, HAYADE) == expected


def test_empty_code_skips_code_checks():
    # "" is a substring of every name; it must not score 0.8
    assert day_score(ObservedDay("2025-06-02", "大月駅", ""), HAYADE) == 0.0
    assert day_score(ObservedDay("2025-06-02", "河口湖駅", ""), HAYADE) == 0.6


def test_pattern_score_is_mean():
    days = [ObservedDay("d", "河口湖駅", "早出"), ObservedDay("d", "大月駅", "日勤")]
    assert pattern_score(days, HAYADE) == 0.5
    assert pattern_score([], HAYADE) == 0.0


def test_classify_thresholds():
    assert classify(0.8) == MATCHED
    assert classify(0.79) == PARTIAL_MATCH
    assert classify(0.5) == PARTIAL_MATCH
    assert classify(0.49) == NO_MATCH


def test_messages_round_half_up():
    assert match_message(MATCHED, 0.9) == "高い一致度 (90%)"
    assert match_message(PARTIAL_MATCH, 0.625) == "部分的一致 (63%)"
    assert match_message(NO_MATCH, 0.2) == "パターン不一致 (20%)"
    assert match_message(NO_REGISTRATION, 0.0) == "照合不可"


def test_tie_keeps_first_registered_pattern(registry):
    days = [ObservedDay("2025-06-02", "富士山駅", "早出"), ObservedDay("2025-06-03", "大月駅", "日勤")]
    r = match_person("山田太郎", days, registry)
    assert r.status == PARTIAL_MATCH
    assert r.score == 0.5
    assert r.best_pattern.name == "早出"
    assert [(p.name, s) for p, s in r.scores] == [("早出", 0.5), ("日勤", 0.5), ("泊", 0.0)]
    assert r.message == "部分的一致 (50%)"


def test_unregistered_person_is_not_scored(registry):
    r = match_person("田中", [ObservedDay("2025-06-02", "出張", "出張")], registry)
    assert r.status == NO_REGISTRATION
    assert r.best_pattern is None and r.scores == []


def test_all_zero_scores_have_no_best(registry):
    r = match_person("佐藤花子", [ObservedDay("2025-06-02", "公休", "公休")], registry)
    assert r.status == NO_MATCH
    assert r.best_pattern is None


def test_match_with_patterns_groups_by_name(registry):
    def fact(name, loc, code):
        return AttendanceFact(name=name, date="2025-06-02", day_of_week="月", location=loc,
                              original_value=code, source_row=1)

    facts = [
        fact("鈴木一郎", "河口湖駅", "泊"),
        fact("田中", "出張", "出張"),
        fact("鈴木一郎", "河口湖駅", "泊"),
    ]
    results = match_with_patterns(facts, registry)
    assert [r.person_name for r in results] == ["鈴木一郎", "田中"]
    assert results[0].status == MATCHED
    assert results[0].best_pattern.name == "泊"
    assert len(results[0].days) == 2
    assert ObservedDay("2025-06-01", "x").weekday == 0
