"""
Unit Tests for Utilities

Tests for score evaluation, CSV loading, synthetic data and plotting.
"""
import pytest
import numpy as np
import pandas as pd

from heartid.capture import SampleWindow
from heartid.preprocessing import SignalPreprocessor
from heartid.utils.data_loader import RecordingLoader
from heartid.utils.evaluation import evaluate_scores, far_frr_at
from heartid.utils.exceptions import HeartIDError, InsufficientDataError
from heartid.utils.synthetic import SubjectProfile, subject_profile, synthetic_bpm, synthetic_ecg


class TestEvaluation:

    def test_separated_scores(self):
        result = evaluate_scores([0.9, 0.95, 1.0], [0.1, 0.2, 0.3])
        assert result.eer == 0.0
        assert result.n_genuine == 3 and result.n_impostor == 3
        assert 0.3 < result.eer_threshold <= 0.9

    def test_distance_scores(self):
        result = evaluate_scores([0.1, 0.2], [1.0, 2.0], higher_is_better=False)
        assert result.eer == 0.0
        assert 0.2 <= result.eer_threshold < 1.0

    def test_overlapping_scores(self):
        result = evaluate_scores([0.5, 0.6, 0.7, 0.8], [0.4, 0.55, 0.65, 0.1])
        assert 0.0 < result.eer <= 0.5
        frame = result.to_dataframe()
        assert isinstance(frame, pd.DataFrame)
        assert list(frame.columns) == ['threshold', 'far', 'frr']

    def test_empty_scores(self):
        with pytest.raises(ValueError):
            evaluate_scores([], [0.1])

    def test_far_frr_at(self):
        rates = far_frr_at([0.9, 0.8, 0.4], [0.1, 0.75], threshold=0.7)
        assert rates['far'] == pytest.approx(0.5)
        assert rates['frr'] == pytest.approx(1 / 3)

        distance = far_frr_at([0.1, 0.5], [0.3, 2.0], threshold=0.42, higher_is_better=False)
        assert distance == {'far': 0.5, 'frr': 0.5}


class TestRecordingLoader:

    def test_samples_roundtrip(self, tmp_path, bpm_series):
        window = SampleWindow.from_values(bpm_series, sampling_interval=0.5, quality=0.9)
        path = tmp_path / 'bpm.csv'
        RecordingLoader.save_samples(window, str(path))

        loaded = RecordingLoader(str(tmp_path)).load_samples('bpm.csv')
        assert list(loaded.values) == [float(v) for v in bpm_series]
        assert loaded.samples[1].timestamp == 0.5
        assert loaded.samples[0].quality == pytest.approx(0.9)

    def test_first_numeric_column(self, tmp_path):
        pd.DataFrame({'label': ['a', 'b'], 'Channel 1': [0.1, 0.2]}).to_csv(tmp_path / 'ecg.csv', index=False)
        loader = RecordingLoader(str(tmp_path))
        assert list(loader.load_waveform('ecg.csv')) == [0.1, 0.2]
        with pytest.raises(KeyError):
            loader.load_waveform('ecg.csv', column='missing')

    def test_sampling_interval_without_timestamps(self, tmp_path):
        pd.DataFrame({'value': [70, 71, 72]}).to_csv(tmp_path / 'v.csv', index=False)
        window = RecordingLoader(str(tmp_path)).load_samples('v.csv', sampling_interval=2.0)
        assert [s.timestamp for s in window.samples] == [0.0, 2.0, 4.0]

    def test_list_recordings(self, tmp_path):
        (tmp_path / 'b.csv').write_text('value\n1\n')
        (tmp_path / 'a.csv').write_text('value\n1\n')
        (tmp_path / 'notes.txt').write_text('x')
        assert RecordingLoader(str(tmp_path)).list_recordings() == ['a.csv', 'b.csv']
        assert RecordingLoader(str(tmp_path / 'missing')).list_recordings() == []

    def test_estimate_sampling_rate(self, tmp_path):
        pd.DataFrame({'value': [1.0, 2.0]}).to_csv(tmp_path / 'n.csv', index=False)
        assert RecordingLoader(str(tmp_path)).estimate_sampling_rate('n.csv', default=500.0) == 500.0


class TestSynthetic:

    def test_ecg_length_and_determinism(self):
        a = synthetic_ecg(duration=4.0, sampling_rate=200.0, seed=3)
        b = synthetic_ecg(duration=4.0, sampling_rate=200.0, seed=3)
        assert len(a) == 800
        assert np.array_equal(a, b)

    def test_subject_profiles(self):
        assert subject_profile(3) == subject_profile(3)
        assert subject_profile(3) != subject_profile(4)
        assert 60.0 <= subject_profile(5).heart_rate <= 85.0
        assert SubjectProfile().heart_rate == 72.0

    def test_bpm_series(self):
        values = synthetic_bpm(n_samples=12, mean=72.0, stdev=2.0, seed=1)
        assert len(values) == 12
        assert np.allclose(values, np.round(values, 1))
        assert np.array_equal(values, synthetic_bpm(n_samples=12, mean=72.0, stdev=2.0, seed=1))


class TestExceptions:

    def test_error_dict(self):
        error = InsufficientDataError("not enough", required=8, available=3)
        data = error.to_dict()
        assert isinstance(error, HeartIDError)
        assert data['error'] == 'INSUFFICIENT_DATA'
        assert data['message'] == 'not enough'


class TestVisualization:

    def test_plot_preprocessing(self, tmp_path, ecg_signal, sampling_rate):
        from heartid.utils.visualization import plot_preprocessing

        result = SignalPreprocessor().process(ecg_signal)
        path = tmp_path / 'figures' / 'pre.png'
        plot_preprocessing(result, sampling_rate, save_path=str(path))
        assert path.exists()

    def test_plot_score_distribution(self, tmp_path):
        from heartid.utils.visualization import plot_score_distribution

        path = tmp_path / 'scores.png'
        plot_score_distribution([0.9, 0.8], [0.2, 0.3], threshold=0.5, save_path=str(path))
        assert path.exists()
