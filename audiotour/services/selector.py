# audiotour/services/selector.py
# Picks which landmark to narrate.

from typing import Dict, List, Optional

import structlog

from audiotour.models.domain import Landmark, SelectionKind, SelectionOutcome

logger = structlog.get_logger(__name__)

DEFAULT_THRESHOLD = 30
RELAXATION_STEP = 10
RELAXATION_FLOOR = 20

HEURISTIC_CATEGORY_BONUS = 20
HEURISTIC_KEYWORDS = (
    "monument",
    "historic",
    "landmark",
    "museum",
    "memorial",
    "plaza",
    "square",
    "cathedral",
    "church",
    "temple",
)


def select(landmarks: List[Landmark], scores: Dict[str, int], threshold: int = DEFAULT_THRESHOLD) -> Optional[Landmark]:
    """Closest landmark whose score reaches ``threshold``.

    Landmarks without a score count as 0. On equal distance the earlier
    landmark wins.
    """
    best: Optional[Landmark] = None
    for landmark in landmarks:
        if scores.get(landmark.id, 0) < threshold:
            continue
        if best is None or landmark.distance < best.distance:
            best = landmark
    return best


def relaxed_threshold(threshold: int) -> int:
    return max(RELAXATION_FLOOR, threshold - RELAXATION_STEP)


def select_with_relaxation(
    landmarks: List[Landmark],
    scores: Dict[str, int],
    threshold: int = DEFAULT_THRESHOLD,
) -> SelectionOutcome:
    """``select`` with a single retry at a lowered threshold when nothing qualifies."""
    if not landmarks:
        return SelectionOutcome(kind=SelectionKind.NO_LANDMARKS)

    chosen = select(landmarks, scores, threshold)
    if chosen is not None:
        return SelectionOutcome(kind=SelectionKind.CHOSEN, landmark=chosen, threshold=threshold)

    retry_threshold = relaxed_threshold(threshold)
    logger.info("selection_relaxed", threshold=threshold, retry_threshold=retry_threshold)
    chosen = select(landmarks, scores, retry_threshold)
    if chosen is not None:
        return SelectionOutcome(kind=SelectionKind.CHOSEN, landmark=chosen, threshold=retry_threshold, relaxed=True)

    return SelectionOutcome(kind=SelectionKind.NO_CANDIDATE, threshold=retry_threshold, relaxed=True)


def heuristic_score(landmark: Landmark) -> float:
    score = 0.0
    if landmark.rating:
        score += landmark.rating * 10
    score += max(0.0, 100 - landmark.distance / 10)
    category = landmark.category.lower()
    if any(keyword in category for keyword in HEURISTIC_KEYWORDS):
        score += HEURISTIC_CATEGORY_BONUS
    return score


def select_by_heuristic(landmarks: List[Landmark]) -> Optional[Landmark]:
    """Rating/distance/category pick used when no significance scores exist.

    Never returns None for a non-empty list; the first landmark wins ties.
    """
    best: Optional[Landmark] = None
    best_score = float("-inf")
    for landmark in landmarks:
        score = heuristic_score(landmark)
        if score > best_score:
            best, best_score = landmark, score
    return best
