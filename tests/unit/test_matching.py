"""
Unit Tests for Matching

Tests for lightweight distance scoring, statistical vote/likelihood decisions and error mapping.
"""
import math

import pytest
import numpy as np

from heartid.features import FeatureExtractor, LightweightFeatureExtractor, LightweightFeatures, RichFeatures
from heartid.matching import ErrorKind, HeartMatcher, MatchDecision, MatchOutcome, MatcherConfig
from heartid.models import EnrollmentTrainer, LightweightModel
from heartid.security import SecurityLevel, policy_for

from tests.conftest import SCENARIO_A, SCENARIO_B_ENROLLED, SCENARIO_B_LIVE


def lightweight_model(values) -> LightweightModel:
    return EnrollmentTrainer().train(LightweightFeatureExtractor().extract(values))


class TestLightweightMatching:
    """Tests for lightweight distance decisions."""

    def test_identical_series_accepted(self):
        model = lightweight_model(SCENARIO_A)
        live = LightweightFeatureExtractor().extract(SCENARIO_A)

        decision = HeartMatcher().match(live, model, SecurityLevel.MEDIUM)

        assert decision.outcome == MatchOutcome.ACCEPTED
        assert decision.score == 0.0
        assert decision.confidence == 1.0
        assert decision.threshold == pytest.approx(0.42 / 0.95)
        assert decision.policy == 'lightweight'
        assert decision.security_level == 'medium'

    def test_different_heart_rate_denied(self):
        model = lightweight_model(SCENARIO_B_ENROLLED)
        live = LightweightFeatureExtractor().extract(SCENARIO_B_LIVE)

        decision = HeartMatcher().match(live, model, SecurityLevel.MEDIUM)

        assert decision.outcome == MatchOutcome.DENIED
        assert decision.score > decision.threshold * 1.5
        assert decision.confidence == 0.0

    def test_score_formula(self):
        extractor = LightweightFeatureExtractor()
        a = extractor.extract(SCENARIO_B_ENROLLED)
        b = extractor.extract(SCENARIO_B_LIVE)
        expected = (0.02 * abs(a.mean - b.mean) + 0.03 * abs(a.stdev - b.stdev)
                    + abs(a.slope_energy - b.slope_energy)
                    + 0.4 * sum(abs(x - y) for x, y in zip(a.histogram, b.histogram)))
        assert HeartMatcher().lightweight_score(b, a) == pytest.approx(expected)

    def test_score_grows_with_differences(self):
        enrolled = LightweightFeatures(mean=70.0, stdev=2.0, slope_energy=3.0, sample_count=9,
                                       histogram=(0.1, 0.2, 0.2, 0.2, 0.2, 0.1))
        shift = np.array([0.05, -0.05, 0.0, 0.0, 0.0, 0.0])
        matcher = HeartMatcher()

        scores = []
        for k in [0.0, 0.25, 0.5, 1.0]:
            live = LightweightFeatures(
                mean=70.0 + 5.0 * k,
                stdev=2.0 + k,
                slope_energy=3.0 + 0.5 * k,
                sample_count=9,
                histogram=tuple(np.array(enrolled.histogram) + k * shift)
            )
            scores.append(matcher.lightweight_score(live, enrolled))

        assert scores[0] == 0.0
        assert all(a < b for a, b in zip(scores, scores[1:]))

    def test_retry_band(self):
        matcher = HeartMatcher()
        policy = policy_for('medium')
        threshold = 0.42 / 0.95

        decision = matcher.decide_lightweight(threshold * 1.2, policy, attempt=0)
        assert decision.outcome == MatchOutcome.RETRY_ELIGIBLE
        assert decision.attempts_remaining == 3
        assert decision.can_retry

        exhausted = matcher.decide_lightweight(threshold * 1.2, policy, attempt=3)
        assert exhausted.outcome == MatchOutcome.DENIED

        far = matcher.decide_lightweight(threshold * 1.6, policy, attempt=0)
        assert far.outcome == MatchOutcome.DENIED

    def test_stricter_level_lowers_threshold(self):
        matcher = HeartMatcher()
        score = 0.40
        assert matcher.decide_lightweight(score, policy_for('low')).outcome == MatchOutcome.ACCEPTED
        assert matcher.decide_lightweight(score, policy_for('maximum')).outcome != MatchOutcome.ACCEPTED

    def test_lower_score_never_worse(self):
        matcher = HeartMatcher()
        rank = {MatchOutcome.DENIED: 0, MatchOutcome.RETRY_ELIGIBLE: 1, MatchOutcome.ACCEPTED: 2}
        for level in SecurityLevel:
            policy = policy_for(level)
            outcomes = [rank[matcher.decide_lightweight(s, policy).outcome]
                        for s in np.linspace(0.0, 1.5, 61)]
            assert outcomes == sorted(outcomes, reverse=True)

    def test_min_samples_per_level(self):
        model = lightweight_model(SCENARIO_A)
        live = LightweightFeatureExtractor().extract(SCENARIO_A)

        decision = HeartMatcher().match(live, model, SecurityLevel.HIGH)

        assert decision.outcome == MatchOutcome.ERROR
        assert decision.error_kind == ErrorKind.INSUFFICIENT_DATA

    def test_min_samples_can_be_disabled(self):
        model = lightweight_model(SCENARIO_A)
        live = LightweightFeatureExtractor().extract(SCENARIO_A)
        matcher = HeartMatcher(MatcherConfig(enforce_min_samples=False))
        assert matcher.match(live, model, 'high').outcome == MatchOutcome.ACCEPTED


class TestRichDecisions:
    """Tests for vote ratio + likelihood decisions."""

    def test_high_level_accepts_near_threshold(self):
        decision = HeartMatcher().decide_rich(0.71, -19.0, policy_for('high'))
        assert decision.outcome == MatchOutcome.ACCEPTED
        assert decision.threshold == pytest.approx(0.70)

    def test_maximum_level_denies_same_statistics(self):
        decision = HeartMatcher().decide_rich(0.71, -19.0, policy_for('maximum'))
        assert decision.outcome == MatchOutcome.DENIED
        assert decision.threshold == pytest.approx(0.84)
        assert decision.attempts_remaining == 0

    def test_likelihood_threshold_not_scaled(self):
        matcher = HeartMatcher()
        for level in SecurityLevel:
            decision = matcher.decide_rich(1.0, -20.5, policy_for(level), attempt=10)
            assert decision.outcome == MatchOutcome.DENIED

    def test_retry_band(self):
        decision = HeartMatcher().decide_rich(0.65, -22.0, policy_for('high'), attempt=0)
        assert decision.outcome == MatchOutcome.RETRY_ELIGIBLE
        assert decision.attempts_remaining == 2

        exhausted = HeartMatcher().decide_rich(0.65, -22.0, policy_for('high'), attempt=2)
        assert exhausted.outcome == MatchOutcome.DENIED

        low_ll = HeartMatcher().decide_rich(0.65, -30.0, policy_for('high'), attempt=0)
        assert low_ll.outcome == MatchOutcome.DENIED

    def test_confidence(self):
        decision = HeartMatcher().decide_rich(0.8, 0.0, policy_for('high'))
        assert decision.confidence == pytest.approx((0.8 + 0.5) / 2)
        floor = HeartMatcher().decide_rich(0.0, -100.0, policy_for('high'))
        assert floor.confidence == 0.0

    def test_higher_vote_never_worse(self):
        matcher = HeartMatcher()
        rank = {MatchOutcome.DENIED: 0, MatchOutcome.RETRY_ELIGIBLE: 1, MatchOutcome.ACCEPTED: 2}
        for level in SecurityLevel:
            policy = policy_for(level)
            outcomes = [rank[matcher.decide_rich(v, -10.0, policy).outcome]
                        for v in np.linspace(0.0, 1.0, 51)]
            assert outcomes == sorted(outcomes)


class TestRichMatching:
    """End-to-end statistical matching on feature vectors."""

    @pytest.fixture
    def model(self, rich_vectors):
        return EnrollmentTrainer().train(RichFeatures(vectors=rich_vectors))

    def test_training_vectors_vote_high(self, model, rich_vectors):
        decision = HeartMatcher().match(RichFeatures(vectors=rich_vectors), model, 'low')
        assert decision.outcome in (MatchOutcome.ACCEPTED, MatchOutcome.RETRY_ELIGIBLE, MatchOutcome.DENIED)
        assert decision.error_kind is None
        assert decision.vote_ratio >= 0.8
        assert math.isfinite(decision.mean_log_likelihood)
        assert decision.policy == 'rich'

    def test_shifted_vectors_vote_low(self, model, rich_vectors):
        decision = HeartMatcher().match(RichFeatures(vectors=rich_vectors + 10.0), model, 'low')
        assert decision.outcome == MatchOutcome.DENIED
        assert decision.vote_ratio == 0.0

    def test_dimension_mismatch(self, model, rich_vectors):
        decision = HeartMatcher().match(RichFeatures(vectors=rich_vectors[:, :10]), model, 'low')
        assert decision.outcome == MatchOutcome.ERROR
        assert decision.error_kind == ErrorKind.DIMENSION_MISMATCH

    def test_version_mismatch(self, model, rich_vectors):
        live = RichFeatures(vectors=rich_vectors, feature_version=99)
        assert HeartMatcher().match(live, model, 'low').error_kind == ErrorKind.DIMENSION_MISMATCH

    def test_nan_features(self, model, rich_vectors):
        vectors = rich_vectors.copy()
        vectors[0, 0] = np.nan
        decision = HeartMatcher().match(RichFeatures(vectors=vectors), model, 'low')
        assert decision.error_kind == ErrorKind.INVALID_INPUT

    def test_no_live_beats(self, model):
        decision = HeartMatcher().match(RichFeatures(), model, 'low')
        assert decision.error_kind == ErrorKind.INSUFFICIENT_DATA

    def test_too_few_beats_for_level(self, model, rich_vectors):
        decision = HeartMatcher().match(RichFeatures(vectors=rich_vectors[:10]), model, 'maximum')
        assert decision.error_kind == ErrorKind.INSUFFICIENT_DATA


class TestBeatMatching:
    """Matching on features extracted from ECG waveforms."""

    @pytest.fixture
    def model(self, ecg_signal):
        return EnrollmentTrainer().train(FeatureExtractor().extract_features(ecg_signal))

    def test_same_recording_accepted(self, model, ecg_signal):
        live = FeatureExtractor().extract_features(ecg_signal)
        decision = HeartMatcher().match(live, model, SecurityLevel.MEDIUM)

        assert decision.outcome == MatchOutcome.ACCEPTED
        assert decision.policy == 'rich'
        assert decision.security_level == 'medium'
        assert decision.threshold == pytest.approx(0.7 * 0.95)
        assert 0.0 < decision.confidence <= 1.0

    def test_repeat_recording_accepted(self, model, repeat_ecg):
        live = FeatureExtractor().extract_features(repeat_ecg)
        assert HeartMatcher().match(live, model, 'high').outcome == MatchOutcome.ACCEPTED

    def test_other_subject_denied(self, model, other_subject_ecg):
        live = FeatureExtractor().extract_features(other_subject_ecg)
        decision = HeartMatcher().match(live, model, 'low')

        assert decision.outcome == MatchOutcome.DENIED
        assert decision.reason


class TestMatchErrors:
    """Failures are reported as decisions, never raised."""

    def test_no_enrollment(self, bpm_series):
        live = LightweightFeatureExtractor().extract(bpm_series)
        decision = HeartMatcher().match(live, None)
        assert decision.outcome == MatchOutcome.ERROR
        assert decision.error_kind == ErrorKind.NO_ENROLLMENT

    def test_missing_live_features(self):
        decision = HeartMatcher().match(None, lightweight_model(SCENARIO_A))
        assert decision.error_kind == ErrorKind.INSUFFICIENT_DATA

    def test_policy_mismatch(self, rich_vectors):
        decision = HeartMatcher().match(RichFeatures(vectors=rich_vectors), lightweight_model(SCENARIO_A))
        assert decision.error_kind == ErrorKind.POLICY_MISMATCH

    def test_unknown_level(self):
        live = LightweightFeatureExtractor().extract(SCENARIO_A)
        decision = HeartMatcher().match(live, lightweight_model(SCENARIO_A), 'extreme')
        assert decision.error_kind == ErrorKind.INVALID_INPUT

    def test_unexpected_object(self):
        decision = HeartMatcher().match("not features", lightweight_model(SCENARIO_A))
        assert decision.outcome == MatchOutcome.ERROR
        assert decision.error_kind == ErrorKind.INTERNAL

    def test_decision_to_dict(self):
        data = MatchDecision.error(ErrorKind.NO_ENROLLMENT, "missing").to_dict()
        assert data['outcome'] == 'error'
        assert data['error_kind'] == 'no_enrollment'
        assert data['score'] is None
