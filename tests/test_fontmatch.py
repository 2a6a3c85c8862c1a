import pytest

from objdiff.fontmatch import FontNotFoundError, FontProperties, FontStyle, find_best_match


def test_no_candidates():
    with pytest.raises(FontNotFoundError):
        find_best_match([], FontProperties())


def test_exact_match_is_chosen():
    candidates = [
        FontProperties(weight=700.0),
        FontProperties(),
        FontProperties(style=FontStyle.ITALIC),
    ]
    assert find_best_match(candidates) == 1


def test_default_query_is_normal():
    candidates = [FontProperties(style=FontStyle.ITALIC), FontProperties(weight=400.0)]
    assert find_best_match(candidates, None) == 1


def test_weight_400_checks_500_first():
    candidates = [FontProperties(weight=300.0), FontProperties(weight=500.0)]
    assert find_best_match(candidates, FontProperties(weight=400.0)) == 1


def test_weight_450_checks_400_first():
    candidates = [FontProperties(weight=500.0), FontProperties(weight=400.0)]
    assert find_best_match(candidates, FontProperties(weight=450.0)) == 1


def test_light_weight_prefers_thinner():
    candidates = [
        FontProperties(weight=500.0),
        FontProperties(weight=700.0),
        FontProperties(weight=200.0),
    ]
    assert find_best_match(candidates, FontProperties(weight=300.0)) == 2


def test_light_weight_falls_back_to_fatter():
    candidates = [FontProperties(weight=700.0), FontProperties(weight=600.0)]
    assert find_best_match(candidates, FontProperties(weight=300.0)) == 1


def test_heavy_weight_prefers_fatter():
    candidates = [
        FontProperties(weight=400.0),
        FontProperties(weight=800.0),
        FontProperties(weight=700.0),
    ]
    assert find_best_match(candidates, FontProperties(weight=600.0)) == 2


def test_italic_falls_back_to_oblique():
    candidates = [FontProperties(), FontProperties(style=FontStyle.OBLIQUE)]
    assert find_best_match(candidates, FontProperties(style=FontStyle.ITALIC)) == 1


def test_normal_style_prefers_oblique_over_italic():
    candidates = [
        FontProperties(style=FontStyle.ITALIC),
        FontProperties(style=FontStyle.OBLIQUE),
    ]
    assert find_best_match(candidates, FontProperties()) == 1


def test_condensed_prefers_narrower():
    candidates = [
        FontProperties(stretch=1.0),
        FontProperties(stretch=0.5),
        FontProperties(stretch=0.625),
    ]
    assert find_best_match(candidates, FontProperties(stretch=0.75)) == 2


def test_expanded_prefers_wider():
    candidates = [
        FontProperties(stretch=0.5),
        FontProperties(stretch=2.0),
        FontProperties(stretch=1.5),
    ]
    assert find_best_match(candidates, FontProperties(stretch=1.25)) == 2


def test_stretch_filters_before_weight():
    candidates = [
        FontProperties(stretch=0.5, weight=400.0),
        FontProperties(stretch=1.0, weight=900.0),
    ]
    assert find_best_match(candidates, FontProperties()) == 1


def test_result_is_a_valid_index():
    candidates = [FontProperties(weight=float(w)) for w in (100, 300, 500, 900)]
    for w in (100.0, 250.0, 420.0, 480.0, 650.0, 1000.0):
        index = find_best_match(candidates, FontProperties(weight=w))
        assert 0 <= index < len(candidates)