"""
Unit Tests for the Authentication Engine

End-to-end enroll / authenticate / revoke flows over in-memory and file stores.
"""
import asyncio

import pytest

from heartid.capture import CaptureSession, SimulatedSensor
from heartid.config import EngineConfig
from heartid.engine import HeartIDEngine
from heartid.matching import ErrorKind, MatchOutcome
from heartid.models import LightweightModel, StatisticalModel
from heartid.storage import FileTemplateStore
from heartid.utils.exceptions import InsufficientDataError, TrainingError

from tests.conftest import SCENARIO_A, SCENARIO_B_ENROLLED, SCENARIO_B_LIVE


def lightweight_engine(store) -> HeartIDEngine:
    return HeartIDEngine(EngineConfig.from_dict({'features': {'policy': 'lightweight'}}), store=store)


class TestLightweightEngine:
    """Lightweight enrollment over BPM samples."""

    def test_enroll_and_authenticate(self, memory_store):
        engine = lightweight_engine(memory_store)
        model = engine.enroll([SCENARIO_A], key='alice')

        assert isinstance(model, LightweightModel)
        assert engine.is_enrolled('alice')

        decision = engine.authenticate(SCENARIO_A, level='medium', key='alice')
        assert decision.outcome == MatchOutcome.ACCEPTED
        assert decision.confidence == 1.0

    def test_impostor_denied(self, memory_store):
        engine = lightweight_engine(memory_store)
        engine.enroll([SCENARIO_B_ENROLLED])
        decision = engine.authenticate(SCENARIO_B_LIVE, level='medium')
        assert decision.outcome == MatchOutcome.DENIED

    def test_insufficient_enrollment_persists_nothing(self, memory_store):
        engine = lightweight_engine(memory_store)
        with pytest.raises(InsufficientDataError):
            engine.enroll([[72, 74, 73]], key='alice')
        assert len(memory_store) == 0
        assert not engine.is_enrolled('alice')

    def test_multiple_lightweight_batches_rejected(self, memory_store):
        engine = lightweight_engine(memory_store)
        with pytest.raises(TrainingError):
            engine.enroll([SCENARIO_A, SCENARIO_A])
        assert len(memory_store) == 0

    def test_reenroll_replaces_model(self, memory_store):
        engine = lightweight_engine(memory_store)
        engine.enroll([SCENARIO_B_LIVE])
        assert engine.authenticate(SCENARIO_A).outcome == MatchOutcome.DENIED

        engine.enroll([SCENARIO_A])
        assert engine.authenticate(SCENARIO_A).outcome == MatchOutcome.ACCEPTED

    def test_revoke(self, memory_store):
        engine = lightweight_engine(memory_store)
        engine.enroll([SCENARIO_A])
        assert engine.revoke() is True
        assert engine.revoke() is False

        decision = engine.authenticate(SCENARIO_A)
        assert decision.outcome == MatchOutcome.ERROR
        assert decision.error_kind == ErrorKind.NO_ENROLLMENT

    def test_insufficient_live_samples(self, memory_store):
        engine = lightweight_engine(memory_store)
        engine.enroll([SCENARIO_A])
        decision = engine.authenticate([72, 73, 74])
        assert decision.error_kind == ErrorKind.INSUFFICIENT_DATA

    def test_unknown_level(self, memory_store):
        engine = lightweight_engine(memory_store)
        engine.enroll([SCENARIO_A])
        assert engine.authenticate(SCENARIO_A, level='extreme').error_kind == ErrorKind.INVALID_INPUT

    def test_corrupt_template(self, memory_store):
        engine = lightweight_engine(memory_store)
        memory_store.save(b'garbage', 'default')
        assert engine.is_enrolled()

        decision = engine.authenticate(SCENARIO_A)
        assert decision.outcome == MatchOutcome.ERROR
        assert decision.error_kind == ErrorKind.STORAGE_FAILURE

    def test_captured_window(self, memory_store):
        engine = lightweight_engine(memory_store)
        engine.enroll([SCENARIO_A])

        session = CaptureSession(SimulatedSensor(SCENARIO_A, sampling_interval=1.0))
        window = asyncio.run(session.capture(engine.policy_for('medium').capture_duration + 2))

        assert engine.authenticate(window, level='medium').outcome == MatchOutcome.ACCEPTED

    def test_file_store(self, tmp_path):
        engine = lightweight_engine(FileTemplateStore(tmp_path))
        engine.enroll([SCENARIO_A], key='alice')

        other = lightweight_engine(FileTemplateStore(tmp_path))
        assert other.is_enrolled('alice')
        assert not other.is_enrolled('bob')
        assert other.load_model('alice') == engine.load_model('alice')
        assert other.authenticate(SCENARIO_A, key='alice').is_accepted


class TestRichEngine:
    """Statistical enrollment over ECG waveforms."""

    def test_same_recording_accepted(self, memory_store, ecg_signal):
        engine = HeartIDEngine(store=memory_store)
        model = engine.enroll([ecg_signal])

        assert isinstance(model, StatisticalModel)
        assert model.n_samples >= 15

        decision = engine.authenticate(ecg_signal, level='low')
        assert decision.outcome == MatchOutcome.ACCEPTED
        assert decision.vote_ratio >= 0.8
        assert decision.mean_log_likelihood >= -20.0
        assert decision.policy == 'rich'
        assert decision.security_level == 'low'

    @pytest.mark.parametrize("level", ['low', 'medium', 'high'])
    def test_genuine_recording_accepted(self, memory_store, ecg_signal, repeat_ecg, level):
        engine = HeartIDEngine(store=memory_store)
        engine.enroll([ecg_signal])

        decision = engine.authenticate(repeat_ecg, level=level)
        assert decision.outcome == MatchOutcome.ACCEPTED
        assert decision.is_accepted

    @pytest.mark.parametrize("level", ['low', 'medium', 'high'])
    def test_other_subject_denied(self, memory_store, ecg_signal, other_subject_ecg, level):
        engine = HeartIDEngine(store=memory_store)
        engine.enroll([ecg_signal])

        decision = engine.authenticate(other_subject_ecg, level=level)
        assert decision.outcome == MatchOutcome.DENIED
        assert decision.error_kind is None

    def test_unusable_waveform_skipped(self, memory_store, ecg_signal):
        engine = HeartIDEngine(store=memory_store)
        model = engine.enroll([ecg_signal[:3], ecg_signal])
        assert model.metadata == {'n_batches': 1}

    def test_no_usable_waveform(self, memory_store):
        engine = HeartIDEngine(store=memory_store)
        with pytest.raises(InsufficientDataError):
            engine.enroll([[0.0] * 10])
        assert len(memory_store) == 0

    def test_cross_policy_template(self, memory_store, ecg_signal):
        lightweight_engine(memory_store).enroll([SCENARIO_A])
        decision = HeartIDEngine(store=memory_store).authenticate(ecg_signal, level='low')
        assert decision.error_kind == ErrorKind.POLICY_MISMATCH
