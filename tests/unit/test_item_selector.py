"""
Unit tests for 3PL scoring and next-item selection.
"""

from datetime import timedelta

import pytest

from tutor_engine.core.errors import InvalidParameters, NoEligibleItems
from tutor_engine.core.models import ItemParameters
from tutor_engine.learning.item_selector import (
    ItemSelector,
    SelectorConfig,
    band_closeness,
    difficulty_to_irt,
    estimate_ability_eap,
    fisher_information,
    irt_to_difficulty,
    item_information,
    score_candidate,
    total_information,
)


def make_item(item_id, difficulty, discrimination=1.0, guess_floor=0.0, topic_id="fractions"):
    return ItemParameters(
        item_id=item_id,
        topic_id=topic_id,
        difficulty=difficulty,
        discrimination=discrimination,
        guess_floor=guess_floor,
    )


class TestScoreCandidate:
    """Tests for the 3PL response probability."""

    def test_at_difficulty_is_midpoint_above_floor(self, sample_item):
        # c + (1 - c) / 2 with c = 0.2
        assert score_candidate(0.0, sample_item) == pytest.approx(0.6)

    def test_increases_with_ability(self, sample_item):
        assert score_candidate(1.0, sample_item) > score_candidate(-1.0, sample_item)

    def test_never_below_guess_floor(self, sample_item):
        assert score_candidate(-50.0, sample_item) >= 0.2
        assert score_candidate(50.0, sample_item) <= 1.0

    @pytest.mark.parametrize(
        "discrimination,guess_floor",
        [(0.0, 0.2), (-1.0, 0.2), (1.0, 1.0), (1.0, -0.1)],
    )
    def test_invalid_parameters(self, discrimination, guess_floor):
        item = make_item("bad", 0.0, discrimination, guess_floor)
        with pytest.raises(InvalidParameters):
            score_candidate(0.0, item)


class TestInformation:
    def test_simplified_information_peak(self):
        item = make_item("a", 0.0, discrimination=1.0)
        assert fisher_information(0.0, item) == pytest.approx(0.25)

    def test_full_information_matches_simplified_without_guessing(self):
        item = make_item("a", 0.5, discrimination=1.5)
        assert item_information(0.0, item) == pytest.approx(fisher_information(0.0, item))

    def test_guessing_reduces_information(self):
        plain = make_item("a", 0.0)
        guessy = make_item("b", 0.0, guess_floor=0.25)
        assert item_information(0.0, guessy) < item_information(0.0, plain)

    def test_total_information_sums_items(self):
        items = [make_item("a", 0.0), make_item("b", 1.0)]
        expected = item_information(0.0, items[0]) + item_information(0.0, items[1])
        assert total_information(0.0, items) == pytest.approx(expected)


class TestBandCloseness:
    def test_inside_band(self):
        assert band_closeness(0.75, (0.7, 0.8)) == 1.0

    def test_linear_falloff(self):
        assert band_closeness(0.5, (0.7, 0.8), falloff=0.5) == pytest.approx(0.6)
        assert band_closeness(0.9, (0.7, 0.8), falloff=0.5) == pytest.approx(0.8)

    def test_floor_at_zero(self):
        assert band_closeness(0.0, (0.7, 0.8), falloff=0.5) == 0.0


class TestSelectNext:
    """Tests for exposure-aware next-item selection."""

    def test_prefers_item_matched_to_ability(self):
        matched = make_item("matched", 0.0)
        too_hard = make_item("too-hard", 3.0)
        too_easy = make_item("too-easy", -3.0)
        selector = ItemSelector()
        assert selector.select_next(0.0, [too_hard, matched, too_easy]).item_id == "matched"

    @pytest.mark.parametrize(
        "offset,expected",
        [
            (1.0, "easier"),  # P = 0.73, inside the band
            (1.4, "easier"),
            (1.5, "matched"),
            (2.0, "matched"),
        ],
    )
    def test_band_favors_slightly_easier_items(self, offset, expected):
        matched = make_item("matched", 0.0)
        easier = make_item("easier", -offset)
        assert ItemSelector().select_next(0.0, [matched, easier]).item_id == expected

    def test_harder_item_never_beats_match(self):
        matched = make_item("matched", 0.0)
        harder = make_item("harder", 1.0)
        assert ItemSelector().select_next(0.0, [matched, harder]).item_id == "matched"

    def test_pure_information_picks_match(self):
        selector = ItemSelector(SelectorConfig(information_weight=1.0))
        items = [make_item("easier", -1.0), make_item("matched", 0.0)]
        assert selector.select_next(0.0, items).item_id == "matched"

    def test_naive_exposure_times_read_as_utc(self, now):
        matched = make_item("matched", 0.0)
        other = make_item("other", 3.0)
        naive_seen = (now - timedelta(hours=2)).replace(tzinfo=None)
        chosen = ItemSelector().select_next(0.0, [matched, other], {"matched": naive_seen}, now=now)
        assert chosen.item_id == "other"

    def test_set_history_excludes_items(self, now):
        matched = make_item("matched", 0.0)
        other = make_item("other", 1.0)
        chosen = ItemSelector().select_next(0.0, [matched, other], {"matched"}, now=now)
        assert chosen.item_id == "other"

    def test_exposure_window_expires(self, now):
        matched = make_item("matched", 0.0)
        other = make_item("other", 3.0)
        selector = ItemSelector(SelectorConfig(exposure_window_hours=24))

        stale = {"matched": now - timedelta(hours=30)}
        fresh = {"matched": now - timedelta(hours=2)}
        assert selector.select_next(0.0, [matched, other], stale, now=now).item_id == "matched"
        assert selector.select_next(0.0, [matched, other], fresh, now=now).item_id == "other"

    def test_all_exposed_raises(self, now):
        items = [make_item("a", 0.0), make_item("b", 1.0)]
        with pytest.raises(NoEligibleItems) as exc:
            ItemSelector().select_next(0.0, items, {"a", "b"}, now=now)
        assert exc.value.total_candidates == 2

    def test_empty_catalog_raises(self):
        with pytest.raises(NoEligibleItems):
            ItemSelector().select_next(0.0, [])

    def test_invalid_candidate_raises(self):
        items = [make_item("ok", 0.0), make_item("bad", 0.0, discrimination=0.0)]
        with pytest.raises(InvalidParameters):
            ItemSelector().select_next(0.0, items)

    def test_tie_broken_by_difficulty_distance(self):
        """With information ignored and a wide band, every item ties on score."""
        selector = ItemSelector(SelectorConfig(information_weight=0.0))
        far = make_item("far", 2.0)
        near = make_item("near", -0.5)
        chosen = selector.select_next(0.0, [far, near], target_band=(0.0, 1.0))
        assert chosen.item_id == "near"

    def test_target_band_override_shifts_choice(self):
        easy = make_item("easy", -2.0)
        hard = make_item("hard", 1.0)
        selector = ItemSelector(SelectorConfig(information_weight=0.0))
        assert selector.select_next(0.0, [easy, hard], target_band=(0.85, 0.95)).item_id == "easy"
        assert selector.select_next(0.0, [easy, hard], target_band=(0.2, 0.3)).item_id == "hard"

    def test_rank_candidates_orders_by_score(self):
        items = [make_item("a", 3.0), make_item("b", 0.0), make_item("c", -1.0)]
        ranked = ItemSelector().rank_candidates(0.0, items)
        scores = [s.score for s in ranked]
        assert scores == sorted(scores, reverse=True)
        assert len(ranked) == 3


class TestAbilityEstimation:
    def test_no_responses_returns_prior(self):
        estimate = estimate_ability_eap([])
        assert estimate.theta == pytest.approx(0.0, abs=1e-6)
        assert estimate.standard_error == pytest.approx(1.0, abs=0.05)

    def test_correct_answers_raise_estimate(self):
        items = [make_item(f"i{n}", 0.0) for n in range(5)]
        up = estimate_ability_eap([(item, True) for item in items])
        down = estimate_ability_eap([(item, False) for item in items])
        assert up.theta > 0 > down.theta
        assert up.standard_error < 1.0

    def test_difficulty_scale_mapping(self):
        assert difficulty_to_irt(5.5) == pytest.approx(0.0)
        assert difficulty_to_irt(10) == pytest.approx(2.7)
        assert difficulty_to_irt(42) == pytest.approx(2.7)
        assert irt_to_difficulty(2.7) == 10
        assert irt_to_difficulty(-9.0) == 1
