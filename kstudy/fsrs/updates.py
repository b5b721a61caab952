"""
Memory-State Updates

Implements the stability and difficulty update rules of the FSRS-5 model.

Key principles:
- A first rating seeds stability and difficulty from the rating alone
- Successful recall never shrinks stability; riskier (lower R) success grows it more
- A lapse always shrinks stability, more so when recall was expected (high R)
- Difficulty drifts with the rating and is pulled back toward a default
"""

from __future__ import annotations

import math

from kstudy.fsrs.constants import D_MAX, D_MIN, S_MIN, Rating
from kstudy.fsrs.parameters import FSRSParameters


def clamp_difficulty(difficulty: float) -> float:
    return max(D_MIN, min(D_MAX, difficulty))


def initial_stability(params: FSRSParameters, rating: Rating) -> float:
    """
    Seed stability for the very first rating.

    Formula:
        S0(G) = w[G-1]
    """
    return max(S_MIN, params[rating - 1])


def _raw_initial_difficulty(params: FSRSParameters, rating: Rating) -> float:
    return params[4] - math.exp(params[5] * (rating - 1)) + 1


def initial_difficulty(params: FSRSParameters, rating: Rating) -> float:
    """
    Seed difficulty for the very first rating.

    Formula:
        D0(G) = w4 - exp(w5 * (G - 1)) + 1, clipped to [1, 10]
    """
    return clamp_difficulty(_raw_initial_difficulty(params, rating))


def next_difficulty(params: FSRSParameters, difficulty: float, rating: Rating) -> float:
    """
    Update difficulty after a rating.

    Formula:
        delta  = -w6 * (G - 3)
        D'     = D + delta * (10 - D) / 9          (linear damping)
        D''    = w7 * D0(Easy) + (1 - w7) * D'     (mean reversion)
        D_new  = clip(D'', 1, 10)

    "Again" pushes difficulty up, "Easy" pulls it down. Damping shrinks the
    step near the top of the scale and mean reversion plus clipping keep
    repeated easy ratings from running below 1. Near D=10 mean reversion
    outweighs the damped step, so "Again" is held at the old value there.
    """
    difficulty = clamp_difficulty(difficulty)

    delta = -params[6] * (rating - 3)
    damped = difficulty + delta * (D_MAX - difficulty) / 9.0

    target = _raw_initial_difficulty(params, Rating.EASY)
    reverted = params[7] * target + (1 - params[7]) * damped
    if rating == Rating.AGAIN:
        reverted = max(reverted, difficulty)

    return clamp_difficulty(reverted)


def next_recall_stability(
    params: FSRSParameters,
    difficulty: float,
    stability: float,
    retrievability: float,
    rating: Rating
) -> float:
    """
    Update stability after a successful recall (Hard/Good/Easy).

    Formula:
        S_new = S * (1 + exp(w8) * (11 - D) * S^(-w9)
                       * (exp(w10 * (1 - R)) - 1) * hard * easy)

    Where hard = w15 for Hard, easy = w16 for Easy, 1 otherwise.
    Every factor is non-negative, so S_new >= S.
    """
    if rating == Rating.AGAIN:
        raise ValueError("Use next_forget_stability for AGAIN ratings")

    difficulty = clamp_difficulty(difficulty)
    retrievability = max(0.0, min(1.0, retrievability))

    hard_penalty = params[15] if rating == Rating.HARD else 1.0
    easy_bonus = params[16] if rating == Rating.EASY else 1.0

    growth = (
        math.exp(params[8])
        * (11 - difficulty)
        * stability ** (-params[9])
        * (math.exp(params[10] * (1 - retrievability)) - 1)
        * hard_penalty
        * easy_bonus
    )

    return max(stability, stability * (1 + growth))


def next_forget_stability(
    params: FSRSParameters,
    difficulty: float,
    stability: float,
    retrievability: float
) -> float:
    """
    Update stability after a lapse (Again).

    Formula:
        S_f = w11 * D^(-w12) * ((S + 1)^w13 - 1) * exp(w14 * (1 - R))
        S_new = max(min(S_MIN, S), min(S_f, S / exp(w17 * w18)))

    The cap guarantees the result is below the pre-lapse stability; the floor
    keeps it positive.
    """
    difficulty = clamp_difficulty(difficulty)
    retrievability = max(0.0, min(1.0, retrievability))

    forgotten = (
        params[11]
        * difficulty ** (-params[12])
        * ((stability + 1) ** params[13] - 1)
        * math.exp(params[14] * (1 - retrievability))
    )
    ceiling = stability / math.exp(params[17] * params[18])

    return max(min(S_MIN, stability), min(forgotten, ceiling))


def apply_new_card_update(
    params: FSRSParameters,
    rating: Rating
) -> tuple[float, float]:
    """
    Seed (stability, difficulty) for a card's first rating.

    Returns:
        (new_stability, new_difficulty)
    """
    return initial_stability(params, rating), initial_difficulty(params, rating)


def apply_review_update(
    params: FSRSParameters,
    stability: float,
    difficulty: float,
    retrievability: float,
    rating: Rating
) -> tuple[float, float]:
    """
    Apply the recall or forgetting rule to an already reviewed card.

    Both stability rules use the pre-update difficulty.

    Returns:
        (new_stability, new_difficulty)
    """
    if rating == Rating.AGAIN:
        new_stability = next_forget_stability(params, difficulty, stability, retrievability)
    else:
        new_stability = next_recall_stability(
            params, difficulty, stability, retrievability, rating
        )

    new_difficulty = next_difficulty(params, difficulty, rating)

    return new_stability, new_difficulty
