from audiotour.models.domain import SelectionKind
from audiotour.services.selector import (
    heuristic_score,
    relaxed_threshold,
    select,
    select_by_heuristic,
    select_with_relaxation,
)

from conftest import make_landmark


def test_threshold_filter_keeps_only_significant_landmarks():
    a = make_landmark(id="A", distance=100)
    b = make_landmark(id="B", distance=500)

    assert select([a, b], {"A": 25, "B": 35}, threshold=30) == b


def test_closest_qualifying_landmark_wins():
    far = make_landmark(id="far", distance=800)
    near = make_landmark(id="near", distance=90)

    assert select([far, near], {"far": 90, "near": 31}) == near


def test_equal_distance_keeps_input_order():
    first = make_landmark(id="first", distance=200)
    second = make_landmark(id="second", distance=200)

    assert select([first, second], {"first": 50, "second": 80}) == first


def test_missing_score_counts_as_zero():
    assert select([make_landmark(id="A")], {}, threshold=30) is None


def test_relaxation_retry_admits_borderline_landmark():
    a = make_landmark(id="A")

    outcome = select_with_relaxation([a], {"A": 22}, threshold=30)

    assert outcome.kind == SelectionKind.CHOSEN
    assert outcome.landmark == a
    assert outcome.relaxed is True
    assert outcome.threshold == 20


def test_relaxation_floor_still_excludes_low_scores():
    outcome = select_with_relaxation([make_landmark(id="A")], {"A": 10}, threshold=30)

    assert outcome.kind == SelectionKind.NO_CANDIDATE
    assert outcome.landmark is None


def test_no_relaxation_needed():
    a = make_landmark(id="A")

    outcome = select_with_relaxation([a], {"A": 60})

    assert outcome.kind == SelectionKind.CHOSEN
    assert outcome.relaxed is False
    assert outcome.threshold == 30


def test_empty_input_reports_no_landmarks():
    assert select_with_relaxation([], {}).kind == SelectionKind.NO_LANDMARKS


def test_relaxed_threshold_has_floor():
    assert relaxed_threshold(30) == 20
    assert relaxed_threshold(50) == 40
    assert relaxed_threshold(25) == 20


def test_heuristic_picks_only_candidate():
    monument = make_landmark(rating=9.0, category="Monument", distance=50)

    assert select_by_heuristic([monument]) == monument


def test_heuristic_score_components():
    landmark = make_landmark(rating=8.0, category="Town Square", distance=300)

    # 80 (rating) + 70 (distance) + 20 (category)
    assert heuristic_score(landmark) == 170


def test_heuristic_prefers_higher_score_and_first_on_ties():
    cafe = make_landmark(id="cafe", category="Cafe", distance=10, rating=None)
    museum = make_landmark(id="museum", category="Art Museum", distance=10, rating=None)
    museum_twin = make_landmark(id="museum-2", category="Art Museum", distance=10, rating=None)

    assert select_by_heuristic([cafe, museum, museum_twin]) == museum


def test_heuristic_empty_list():
    assert select_by_heuristic([]) is None
