"""Tests for the level engine and tier policy"""
from decimal import Decimal

import pytest

from apps.backend.services.levels import level_engine
from apps.backend.services.levels.level_engine import LevelEngine, ProgressResult
from apps.backend.services.levels.level_policy import (
    InvalidPointsError,
    LevelPolicy,
    Tier,
    to_points,
)


@pytest.fixture
def engine():
    return LevelEngine()


@pytest.mark.parametrize(
    "points,expected",
    [
        (0, "Bronze"),
        (99, "Bronze"),
        (100, "Silver"),
        (249, "Silver"),
        (250, "Gold"),
        (499, "Gold"),
        (500, "Diamond"),
        (999, "Diamond"),
        (1000, "Pearl"),
        (250000, "Pearl"),
    ],
)
def test_classify_boundaries(engine, points, expected):
    """Thresholds are inclusive lower bounds"""
    assert engine.classify(points) == expected


def test_classify_missing_or_negative_is_lowest(engine):
    assert engine.classify(None) == "Bronze"
    assert engine.classify(-5) == "Bronze"


def test_classify_accepts_integral_strings(engine):
    """PostgREST can hand back bigint columns as strings"""
    assert engine.classify("250") == "Gold"
    assert engine.classify(" 1000 ") == "Pearl"


def test_classify_rejects_non_numeric(engine):
    with pytest.raises(InvalidPointsError):
        engine.classify("lots")
    with pytest.raises(InvalidPointsError):
        engine.classify(True)
    with pytest.raises(InvalidPointsError):
        engine.classify(float("nan"))
    with pytest.raises(InvalidPointsError):
        engine.classify([100])


def test_progress_at_zero(engine):
    result = engine.progress(0)
    assert result == ProgressResult(
        current_tier="Bronze",
        next_tier="Silver",
        progress_percent=0.0,
        points_remaining=100,
        points_into_tier=0,
    )


def test_progress_just_below_threshold(engine):
    result = engine.progress(99)
    assert result.current_tier == "Bronze"
    assert result.next_tier == "Silver"
    assert result.progress_percent == pytest.approx(99.0)
    assert result.points_remaining == 1


def test_progress_on_threshold_starts_new_bracket(engine):
    result = engine.progress(100)
    assert result.current_tier == "Silver"
    assert result.next_tier == "Gold"
    assert result.progress_percent == 0.0
    assert result.points_remaining == 150


def test_progress_midway(engine):
    result = engine.progress(175)
    assert result.points_into_tier == 75
    assert result.progress_percent == pytest.approx(50.0)
    assert result.points_remaining == 75


def test_progress_terminal_tier(engine):
    result = engine.progress(1000)
    assert result.current_tier == "Pearl"
    assert result.next_tier is None
    assert result.is_top_tier
    assert result.progress_percent == 100.0
    assert result.points_remaining == 0

    beyond = engine.progress(5000)
    assert beyond.progress_percent == 100.0
    assert beyond.points_into_tier == 4000


def test_progress_negative_is_clamped(engine):
    assert engine.progress(-5) == engine.progress(0)


def test_progress_invariants_hold_everywhere(engine):
    order = [t.name for t in engine.policy.tiers]
    previous = 0
    for points in range(0, 1200):
        result = engine.progress(points)
        assert 0.0 <= result.progress_percent <= 100.0
        assert result.points_remaining >= 0
        assert result.current_tier == engine.classify(points)
        # classify never goes down as points grow
        rank = order.index(result.current_tier)
        assert rank >= previous
        previous = rank
        if result.next_tier is not None:
            assert points + result.points_remaining == engine.policy.tier_by_name(result.next_tier).min_points


def test_progress_is_idempotent(engine):
    assert engine.progress(321) == engine.progress(321)
    assert engine.progress(321).to_dict() == engine.progress(Decimal("321.9")).to_dict()


def test_would_advance(engine):
    up = engine.would_advance(total_points=95, points_delta=10)
    assert up == {"advanced": True, "before": "Bronze", "after": "Silver"}

    flat = engine.would_advance(total_points=100, points_delta=2)
    assert flat["advanced"] is False
    assert flat["before"] == flat["after"] == "Silver"


def test_explain_messages(engine):
    mid = engine.explain(120)
    assert mid["message"] == "130 pts to Gold"
    assert mid["next_threshold"] == 250
    assert mid["total_points"] == 120

    top = engine.explain(1500)
    assert top["message"] == "Maximum level reached (Pearl)."
    assert top["next_threshold"] is None


def test_module_level_helpers():
    assert level_engine.classify(500) == "Diamond"
    assert level_engine.progress(500).next_tier == "Pearl"


# ---------------------------------------
# Policy
# ---------------------------------------
def test_to_points_normalisation():
    assert to_points(None) == 0
    assert to_points(-20) == 0
    assert to_points(12.9) == 12
    assert to_points("42") == 42


def test_default_policy_shape():
    policy = LevelPolicy()
    assert [t.name for t in policy.tiers] == ["Bronze", "Silver", "Gold", "Diamond", "Pearl"]
    assert [t.min_points for t in policy.tiers] == [0, 100, 250, 500, 1000]
    assert policy.lowest.name == "Bronze"
    assert policy.terminal.name == "Pearl"
    assert policy.tier_above(policy.terminal) is None


def test_policy_sorts_tiers_by_threshold():
    policy = LevelPolicy(
        tiers=(
            Tier(key="b", name="B", min_points=10, order=2),
            Tier(key="a", name="A", min_points=0, order=1),
        )
    )
    assert [t.key for t in policy.tiers] == ["a", "b"]


@pytest.mark.parametrize(
    "tiers,message",
    [
        ((Tier("a", "A", 5, 1),), "first tier"),
        ((Tier("a", "A", 0, 1), Tier("b", "B", 0, 2)), "strictly increase"),
        ((Tier("a", "A", 0, 2), Tier("b", "B", 10, 1)), "order"),
        ((Tier("a", "A", 0, 1), Tier("a", "B", 10, 2)), "duplicate tier key"),
        ((Tier("a", "A", 0, 1), Tier("b", "A", 10, 2)), "duplicate tier name"),
        ((Tier(" ", "A", 0, 1),), "key cannot be empty"),
    ],
)
def test_policy_validation(tiers, message):
    with pytest.raises(ValueError, match=message):
        LevelPolicy(tiers=tiers)


def test_policy_from_dict_round_trip():
    data = {
        "version": "custom",
        "tiers": [
            {"key": "starter", "min_points": 0},
            {"key": "pro", "name": "Pro", "min_points": 50},
        ],
    }
    policy = LevelPolicy.from_dict(data)
    assert policy.version == "custom"
    assert [t.name for t in policy.tiers] == ["Starter", "Pro"]

    engine = LevelEngine(policy)
    assert engine.classify(49) == "Starter"
    assert engine.progress(75).is_top_tier


def test_policy_from_empty_dict_uses_defaults():
    assert LevelPolicy.from_dict({}).to_dict() == LevelPolicy().to_dict()
