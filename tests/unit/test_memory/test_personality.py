"""Tests for persona adaptation and relationship detection."""

from datetime import datetime, timedelta, timezone

import pytest

from src.memory.models import PersonalityProfile, RelationshipState
from src.memory.personality import (
    adapt_personality,
    adjust_traits_for_domain,
    blend_traits,
    determine_relationship,
    evolve_profile,
    is_relationship_stale,
)

NOW = datetime(2025, 3, 14, 12, 0, tzinfo=timezone.utc)


class TestAdjustTraitsForDomain:
    def test_work_raises_logic(self):
        base = PersonalityProfile().traits()
        adjusted = adjust_traits_for_domain("big deadline at work", base)
        assert adjusted["logic"] == pytest.approx(0.9)
        assert adjusted["playfulness"] == pytest.approx(0.65)

    def test_caps_at_one(self):
        base = PersonalityProfile(empathy=0.95).traits()
        adjusted = adjust_traits_for_domain("I love my family", base)
        assert adjusted["empathy"] == 1.0

    def test_unrelated_text_unchanged(self):
        base = PersonalityProfile().traits()
        assert adjust_traits_for_domain("the bus is late", base) == base


class TestDetermineRelationship:
    """Keyword scoring over recent messages."""

    def test_romantic(self):
        state = determine_relationship(["miss you babe", "love you"], NOW)
        assert state.type == "romantic"
        assert state.confidence == pytest.approx(0.3)
        assert state.traits["flirtiness"] == 0.9
        assert state.updated_at == NOW

    def test_counselor(self):
        state = determine_relationship(["I need advice, so much stress"], NOW)
        assert state.type == "counselor"

    def test_no_keywords_falls_back_to_companion(self):
        state = determine_relationship(["the bus is late"], NOW)
        assert state.type == "companion"
        assert state.confidence == 0.0

    def test_tie_goes_to_earlier_persona(self):
        state = determine_relationship(["love", "game"], NOW)
        assert state.type == "romantic"

    def test_confidence_capped(self):
        state = determine_relationship(["love " * 30], NOW)
        assert state.confidence == 1.0


class TestStaleness:
    def test_missing_is_stale(self):
        assert is_relationship_stale(None, NOW)

    def test_fresh(self):
        state = RelationshipState(updated_at=NOW - timedelta(days=6))
        assert not is_relationship_stale(state, NOW, stale_days=7)

    def test_old(self):
        state = RelationshipState(updated_at=NOW - timedelta(days=8))
        assert is_relationship_stale(state, NOW, stale_days=7)


class TestBlendTraits:
    def test_thirty_percent_influence(self):
        blended = blend_traits({"humor": 0.5, "logic": 0.8}, {"humor": 1.0})
        assert blended["humor"] == pytest.approx(0.65)
        assert blended["logic"] == pytest.approx(0.8)


class TestAdaptPersonality:
    def test_sad_raises_empathy_and_lowers_humor(self):
        profile = PersonalityProfile()
        relationship = RelationshipState(type="companion", traits={})

        adaptation = adapt_personality(profile, relationship, "sad", "casual", "")

        assert adaptation.traits["empathy"] == pytest.approx(1.0)
        assert adaptation.traits["humor"] == pytest.approx(0.4)
        assert adaptation.relationship_type == "companion"

    def test_question_intent(self):
        adaptation = adapt_personality(
            PersonalityProfile(), RelationshipState(traits={}), "neutral", "question", ""
        )
        assert adaptation.traits["curiosity"] == pytest.approx(0.9)

    def test_dominant_traits_above_threshold(self):
        profile = PersonalityProfile(
            curiosity=0.5, empathy=0.9, humor=0.5, flirtiness=0.5, logic=0.5, playfulness=0.5
        )
        adaptation = adapt_personality(profile, RelationshipState(traits={}), "neutral", "casual", "")
        assert adaptation.dominant_traits == ["empathy"]

    def test_floor_respected(self):
        profile = PersonalityProfile(humor=0.15)
        adaptation = adapt_personality(profile, RelationshipState(traits={}), "sad", "casual", "")
        assert adaptation.traits["humor"] == pytest.approx(0.1)


class TestEvolveProfile:
    def test_moves_ten_percent_toward_target(self):
        profile = PersonalityProfile(humor=0.6)
        evolved = evolve_profile(profile, {"humor": 1.0}, rate=0.1)
        assert evolved.humor == pytest.approx(0.64)
        assert evolved.logic == pytest.approx(0.8)
