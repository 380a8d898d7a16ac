"""
Tests for age bucketing, gender bias correction and heuristics.
"""

import numpy as np
import pytest

from algorithms.demographics import (
    DemographicClassifier,
    age_group_for,
    boost_female_probability,
    hair_evidence,
    resolve_gender,
    shape_evidence,
)
from models.config import GenderCorrectionConfig
from models.detection import AgeGroup, BoundingBox, Gender

from conftest import make_raw


class TestAgeBuckets:
    """Age bucketing is total with boundaries going to the higher bucket."""

    def test_every_age_gets_exactly_one_bucket(self):
        """Ages 0-120 each map to a single known bucket."""
        for age in range(0, 121):
            group = age_group_for(age)
            assert group in (AgeGroup.KID, AgeGroup.YOUNG, AgeGroup.ADULT)
            if age < 13:
                assert group == AgeGroup.KID
            elif age < 35:
                assert group == AgeGroup.YOUNG
            else:
                assert group == AgeGroup.ADULT

    def test_boundaries(self):
        """13 is young, 35 is adult."""
        assert age_group_for(12.99) == AgeGroup.KID
        assert age_group_for(13) == AgeGroup.YOUNG
        assert age_group_for(34.99) == AgeGroup.YOUNG
        assert age_group_for(35) == AgeGroup.ADULT

    def test_missing_age(self):
        """Unknown age defaults to young."""
        assert age_group_for(None) == AgeGroup.YOUNG


class TestFemaleBoost:
    """Bias-correction bound: raw <= corrected <= 1."""

    def test_boost_bound(self):
        """The boost never lowers the probability and never exceeds 1."""
        for raw in np.linspace(0.0, 1.0, 21):
            for boost in np.linspace(0.0, 0.30, 7):
                corrected = boost_female_probability(raw, boost)
                assert raw - 1e-12 <= corrected <= 1.0

    def test_boost_formula(self):
        """corrected = raw + b * (1 - raw)."""
        assert boost_female_probability(0.4, 0.2) == pytest.approx(0.52)

    def test_boost_clamped_to_max(self):
        """Boosts above 0.30 are treated as 0.30."""
        assert boost_female_probability(0.0, 0.9) == pytest.approx(0.30)

    def test_zero_boost_is_identity(self):
        """A zero boost disables the correction."""
        assert boost_female_probability(0.37, 0.0) == pytest.approx(0.37)


class TestResolveGender:
    """Label and confidence after correction."""

    def test_boost_flips_borderline(self):
        """0.45 boosted by 0.10 crosses 0.5 and becomes female."""
        estimate = resolve_gender(0.45, GenderCorrectionConfig(female_boost=0.10))
        assert estimate.gender == Gender.FEMALE
        assert estimate.female_probability == pytest.approx(0.505)
        assert estimate.confidence == pytest.approx(0.505)
        assert estimate.raw_female_probability == pytest.approx(0.45)

    def test_male_confidence(self):
        """Confidence is max(p, 1 - p)."""
        estimate = resolve_gender(0.1, GenderCorrectionConfig(female_boost=0.0))
        assert estimate.gender == Gender.MALE
        assert estimate.confidence == pytest.approx(0.9)

    def test_evidence_adds_toward_female(self):
        """Heuristic evidence only raises P(female)."""
        cfg = GenderCorrectionConfig(female_boost=0.0)
        assert resolve_gender(0.4, cfg, 0.5).female_probability == pytest.approx(0.7)


class TestDemographicClassifier:
    """Classification of filtered detections."""

    def test_classify(self):
        """Age and corrected gender are attached."""
        classifier = DemographicClassifier(GenderCorrectionConfig(female_boost=0.10))
        result = classifier.classify(make_raw(0, 0, 100, 100, age=40, female_probability=0.3))
        assert result.age_group == AgeGroup.ADULT
        assert result.gender == Gender.MALE
        assert result.confidence == pytest.approx(0.63)
        assert result.raw_female_probability == pytest.approx(0.3)
        assert result.raw_age == 40

    def test_missing_attributes(self):
        """No estimator output means male at zero confidence."""
        classifier = DemographicClassifier()
        result = classifier.classify(make_raw(0, 0, 100, 100, age=None, female_probability=None))
        assert result.gender == Gender.MALE
        assert result.confidence == 0.0
        assert result.age_group == AgeGroup.YOUNG

    def test_heuristics_disabled_by_default(self):
        """Without heuristics the narrow face shape does not matter."""
        classifier = DemographicClassifier(GenderCorrectionConfig(female_boost=0.0))
        narrow = make_raw(0, 0, 60, 100, female_probability=0.4)
        assert classifier.classify(narrow).confidence == pytest.approx(0.6)


class TestHeuristics:
    """Shape and hair evidence."""

    def test_shape_evidence(self):
        """Wide faces give no evidence; narrow faces give up to 1."""
        assert shape_evidence(BoundingBox.from_xywh(0, 0, 100, 100)) == 0.0
        assert shape_evidence(BoundingBox.from_xywh(0, 0, 70, 100)) == pytest.approx(1.0)

    def test_hair_evidence_dark_sides(self):
        """Dark strips on both sides of the jaw count as hair."""
        frame = np.full((300, 300, 3), 200, dtype=np.uint8)
        frame[:, :100] = 10
        frame[:, 200:] = 10
        assert hair_evidence(frame, BoundingBox(100, 50, 200, 170)) == pytest.approx(1.0)

    def test_hair_evidence_bright_background(self):
        """A bright background gives no hair evidence."""
        frame = np.full((300, 300, 3), 200, dtype=np.uint8)
        assert hair_evidence(frame, BoundingBox(100, 50, 200, 170)) == 0.0
