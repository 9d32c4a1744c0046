from location_estimator import estimate_location
from registry import Registry


def test_blank_is_no_attendance(registry):
    assert estimate_location("", registry) is None
    assert estimate_location("  ", registry) is None
    assert estimate_location(None, registry) is None


def test_exact_station(registry):
    assert estimate_location("河口湖駅", registry) == "河口湖駅"


def test_abbreviation_fallback():
    assert estimate_location("大月", Registry()) == "大月駅"
    assert estimate_location("HL", Registry()) == "ハイランド駅"
    assert estimate_location("指泊", Registry()) == "河口湖駅"


def test_station_name_contained_in_cell():
    assert estimate_location("富士山 応援", Registry()) == "富士山駅"


def test_pattern_exact_without_train(registry):
    assert estimate_location("日勤", registry, "山田太郎") == "大月駅"


def test_train_pattern_redirects_to_nearest_station(registry):
    assert estimate_location("早出", registry, "山田太郎") == "富士山駅"
    # unknown person or no person: pattern location
    assert estimate_location("早出", registry, "田中") == "河口湖駅"
    assert estimate_location("早出", registry) == "河口湖駅"
    # registered but without a nearest station
    assert estimate_location("早出", registry, "鈴木一郎") == "河口湖駅"


def test_pattern_substring(registry):
    assert estimate_location("早出2", registry, "佐藤花子") == "大月駅"


def test_unknown_code_kept_as_text(registry):
    assert estimate_location(" 出張 ", registry) == "出張"
    assert estimate_location(7, registry) == "7"
