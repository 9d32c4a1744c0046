import pytest

from name_normalizer import normalize_name


@pytest.mark.parametrize("raw", ["  A   B", "A\u3000B", "A\u00a0B", "\tA\n B "])
def test_whitespace_variants_fold_to_one_key(raw):
    assert normalize_name(raw) == "A B"


def test_idempotent():
    for raw in ["  山田\u3000 太郎 ", "A  B", ""]:
        once = normalize_name(raw)
        assert normalize_name(once) == once


def test_none_and_non_strings():
    assert normalize_name(None) == ""
    assert normalize_name(123) == "123"


def test_no_width_or_case_folding():
    assert normalize_name("ＡＢ") == "ＡＢ"
    assert normalize_name("Ab") == "Ab"
    assert normalize_name("山田太郎") == "山田太郎"
