import random
from datetime import timedelta

import pytest

from kstudy.fsrs.constants import (
    D_MAX,
    D_MIN,
    DECAY,
    FACTOR,
    FALLBACK_STABILITY,
    MemoryPhase,
    Rating,
)
from kstudy.fsrs.errors import InvalidRating
from kstudy.fsrs.memory_state import (
    HistoryEntry,
    ReviewState,
    calculate_retrievability,
    create_initial_state,
    create_state_from_difficulty,
    get_memory_phase,
)
from kstudy.fsrs.parameters import DEFAULT_WEIGHTS, SchedulerConfig
from kstudy.fsrs.scheduler import (
    coerce_rating,
    next_interval_days,
    preview_new_card_interval,
    process_review,
)


@pytest.fixture
def config():
    return SchedulerConfig()


# ---- Rating validation ----

@pytest.mark.parametrize("rating", [0, 5, -1, 3.0, "3", None, True])
def test_invalid_rating_is_rejected_before_any_change(t0, config, rating):
    state = create_state_from_difficulty("easy", t0)
    snapshot = ReviewState(**state.__dict__)

    with pytest.raises(InvalidRating):
        process_review(state, rating, t0 + timedelta(days=7), config)

    assert state == snapshot
    assert len(state.review_history) == 1


def test_coerce_rating_accepts_ints_and_enum():
    assert coerce_rating(3) is Rating.GOOD
    assert coerce_rating(Rating.AGAIN) is Rating.AGAIN


# ---- Intervals ----

@pytest.mark.parametrize("stability", [1.0, 3.0, 10.0, 120.0])
def test_interval_equals_stability_at_ninety_percent(stability, config):
    assert next_interval_days(stability, config) == round(stability)


@pytest.mark.parametrize("retention", [0.7, 0.8, 0.85, 0.95])
def test_interval_is_where_retrievability_meets_retention(retention):
    stability = 10.0
    exact = stability / FACTOR * (retention ** (1 / DECAY) - 1)

    assert calculate_retrievability(stability, exact) == pytest.approx(retention)
    assert next_interval_days(stability, SchedulerConfig(desired_retention=retention)) == round(exact)


def test_lower_retention_gives_longer_interval():
    assert next_interval_days(10.0, SchedulerConfig(desired_retention=0.8)) == 24


def test_interval_is_at_least_one_day(config):
    assert next_interval_days(0.01, config) == 1


def test_interval_is_capped(config):
    capped = SchedulerConfig(maximum_interval=30)
    assert next_interval_days(1000.0, capped) == 30
    assert next_interval_days(1e9, config) == config.maximum_interval


# ---- New phase ----

@pytest.mark.parametrize("rating", [Rating.HARD, Rating.GOOD, Rating.EASY])
def test_first_rating_uses_seed_formulas(t0, config, rating):
    state = process_review(create_initial_state(t0), rating, t0 + timedelta(days=1), config)

    assert state.stability == DEFAULT_WEIGHTS[rating - 1]
    assert state.lapses == 0
    assert state.review_history[0].retrievability == 1.0
    assert state.review_history[0].stability_before == 0
    assert state.review_history[0].difficulty_before == 5


def test_first_rating_again_counts_a_lapse(t0, config):
    now = t0 + timedelta(days=1)
    state = process_review(create_initial_state(t0), Rating.AGAIN, now, config)

    assert state.stability == DEFAULT_WEIGHTS[0]
    assert state.lapses == 1
    assert state.current_interval_days == 0
    assert state.next_review_date == now + config.relearning_step
    assert get_memory_phase(state) == MemoryPhase.RELEARNING


def test_preview_new_card_intervals(config):
    assert preview_new_card_interval(Rating.AGAIN, config) == 0
    assert preview_new_card_interval(Rating.HARD, config) == 1
    assert preview_new_card_interval(Rating.GOOD, config) == 3
    assert preview_new_card_interval(Rating.EASY, config) == 16


# ---- End-to-end ----

def test_good_then_again_scenario(t0, config):
    state = create_initial_state(t0)

    first_review = t0 + timedelta(days=1)
    state = process_review(state, Rating.GOOD, first_review, config)

    assert state.stability > 0
    assert state.lapses == 0
    assert len(state.review_history) == 1
    assert state.next_review_date > first_review
    assert state.last_review_date == first_review
    good_stability = state.stability

    due = state.next_review_date
    state = process_review(state, Rating.AGAIN, due, config)

    assert state.lapses == 1
    assert state.stability < good_stability
    assert len(state.review_history) == 2
    assert state.review_history[1].stability_before == good_stability
    assert 0.0 < state.review_history[1].retrievability < 1.0
    assert get_memory_phase(state) == MemoryPhase.RELEARNING


def test_review_at_due_date_sees_target_retention(t0, config):
    state = process_review(create_initial_state(t0), Rating.GOOD, t0, config)
    # Seed stability 3.173 is scheduled for 3 days, so R is slightly above 0.9
    state = process_review(state, Rating.GOOD, state.next_review_date, config)
    assert state.review_history[-1].retrievability == pytest.approx(0.9, abs=0.01)


# ---- Elapsed-time shapes ----

def test_same_day_relapse_and_recovery(t0, config):
    state = process_review(create_initial_state(t0), Rating.GOOD, t0, config)
    seeded = state.stability

    state = process_review(state, Rating.AGAIN, t0, config)
    assert state.stability < seeded
    assert state.review_history[-1].retrievability == 1.0
    assert state.next_review_date == t0 + config.relearning_step

    relapsed = state.stability
    state = process_review(state, Rating.GOOD, t0 + timedelta(minutes=10), config)
    assert state.stability >= relapsed
    assert state.lapses == 1
    assert get_memory_phase(state) == MemoryPhase.REVIEW


def test_multi_year_gap(t0, config):
    state = process_review(create_initial_state(t0), Rating.GOOD, t0, config)
    before = state.stability

    later = t0 + timedelta(days=5 * 365)
    state = process_review(state, Rating.GOOD, later, config)

    assert state.review_history[-1].retrievability < 0.2
    assert state.stability > before
    assert 1 <= state.current_interval_days <= config.maximum_interval
    assert state.next_review_date == later + timedelta(days=state.current_interval_days)


def test_success_intervals_are_in_the_future(t0, config):
    state = create_state_from_difficulty("medium", t0)
    for days, rating in [(3, Rating.HARD), (5, Rating.GOOD), (30, Rating.EASY)]:
        now = state.last_review_date + timedelta(days=days)
        state = process_review(state, rating, now, config)
        assert state.current_interval_days >= 1
        assert state.next_review_date > now


# ---- Invariants over random sequences ----

@pytest.mark.parametrize("seed", range(8))
def test_random_rating_sequences_keep_invariants(t0, config, seed):
    rng = random.Random(seed)
    state = create_initial_state(t0)
    now = t0

    for _ in range(150):
        rating = rng.choice(list(Rating))
        now = now + timedelta(days=rng.choice([0, 0.01, 1, 3, 30, 400, 2000]))
        previous = state

        state = process_review(previous, rating, now, config)

        assert D_MIN <= state.difficulty <= D_MAX
        assert state.stability > 0
        assert len(state.review_history) == len(previous.review_history) + 1
        assert state.review_history[:-1] == previous.review_history
        assert 0.0 <= state.review_history[-1].retrievability <= 1.0

        if rating == Rating.AGAIN:
            assert state.lapses == previous.lapses + 1
            if previous.stability > 0:
                assert state.stability <= previous.stability
        else:
            assert state.lapses == previous.lapses
            if previous.stability > 0:
                assert state.stability >= previous.stability


def test_input_state_is_not_modified(t0, config):
    state = create_state_from_difficulty("easy", t0)
    snapshot = ReviewState(**state.__dict__)

    process_review(state, Rating.GOOD, t0 + timedelta(days=7), config)

    assert state == snapshot


# ---- Degenerate rows ----

def _degenerate_state(t0):
    entry = HistoryEntry(
        date=t0,
        rating=Rating.GOOD,
        stability_before=0.0,
        stability_after=0.0,
        difficulty_before=5.0,
        difficulty_after=5.0,
        retrievability=1.0,
    )
    return ReviewState(
        stability=0.0,
        difficulty=5.0,
        lapses=0,
        current_interval_days=1,
        next_review_date=t0,
        last_review_date=t0,
        review_history=(entry,),
    )


def test_history_without_stability_falls_back(t0, config):
    state = process_review(_degenerate_state(t0), Rating.GOOD, t0 + timedelta(days=2), config)

    assert state.stability > FALLBACK_STABILITY
    assert state.review_history[-1].stability_before == 0.0
    assert state.review_history[-1].retrievability == 1.0


def test_fallback_stability_decays_with_elapsed_time(t0, config):
    soon = process_review(_degenerate_state(t0), Rating.GOOD, t0 + timedelta(days=2), config)
    late = process_review(_degenerate_state(t0), Rating.GOOD, t0 + timedelta(days=730), config)

    assert late.stability > soon.stability
    assert late.review_history[-1].retrievability == 1.0


def test_fallback_lapse_uses_fallback_stability(t0, config):
    state = process_review(_degenerate_state(t0), Rating.AGAIN, t0 + timedelta(days=2), config)

    assert 0 < state.stability < FALLBACK_STABILITY
    assert state.lapses == 1


def test_out_of_range_difficulty_is_clamped(t0, config):
    state = ReviewState(
        stability=5.0,
        difficulty=42.0,
        lapses=0,
        current_interval_days=5,
        next_review_date=t0,
        last_review_date=t0 - timedelta(days=5),
    )
    state = process_review(state, Rating.AGAIN, t0, config)
    assert D_MIN <= state.difficulty <= D_MAX
