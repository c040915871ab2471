"""
Unit Tests for Signal Preprocessing

Tests for one-pole filters, Pan-Tompkins R-peak detection, beat segmentation and the pipeline.
"""
import pytest
import numpy as np

from heartid.preprocessing import (
    BaselineCorrector,
    BeatSegmenter,
    PreprocessingConfig,
    RPeakDetector,
    SignalPreprocessor,
    WaveletDenoiser,
    one_pole_bandpass,
    one_pole_highpass,
    one_pole_lowpass,
)
from heartid.preprocessing.baseline_correction import rc_alpha


class TestOnePoleFilters:
    """Tests for single-pole IIR filters."""

    def test_alpha_formula(self):
        fs, fc = 250.0, 15.0
        rc = 1.0 / (2 * np.pi * fc)
        dt = 1.0 / fs
        assert rc_alpha(fs, fc) == pytest.approx(dt / (rc + dt))

    def test_alpha_rejects_non_positive(self):
        with pytest.raises(ValueError):
            rc_alpha(0.0, 5.0)

    def test_highpass_starts_at_zero(self):
        x = np.linspace(3.0, 5.0, 100)
        y = one_pole_highpass(x, 250.0, 0.5)
        assert y[0] == 0.0

    def test_highpass_removes_dc(self):
        y = one_pole_highpass(np.full(500, 7.0), 250.0, 0.5)
        assert np.allclose(y, 0.0)

    def test_lowpass_converges_to_constant(self):
        y = one_pole_lowpass(np.full(1000, 2.0), 250.0, 15.0)
        assert y[-1] == pytest.approx(2.0, abs=1e-6)

    def test_bandpass_rejects_inverted_band(self):
        with pytest.raises(ValueError):
            one_pole_bandpass(np.zeros(10), 250.0, 15.0, 5.0)

    def test_empty_input(self):
        assert len(one_pole_lowpass(np.array([]), 250.0, 15.0)) == 0
        assert len(one_pole_highpass(np.array([]), 250.0, 5.0)) == 0


class TestBaselineCorrector:
    """Tests for baseline wander removal."""

    def test_unknown_method(self):
        with pytest.raises(ValueError):
            BaselineCorrector(method='median')

    def test_highpass_reduces_drift(self, sampling_rate):
        t = np.arange(int(10 * sampling_rate)) / sampling_rate
        drift = 2.0 * np.sin(2 * np.pi * 0.05 * t)
        corrected, _ = BaselineCorrector(sampling_rate=sampling_rate).correct(drift)
        assert np.std(corrected) < np.std(drift)

    def test_returns_baseline_when_requested(self, ecg_signal, sampling_rate):
        corrector = BaselineCorrector(sampling_rate=sampling_rate)
        corrected, baseline = corrector.correct(ecg_signal, return_baseline=True)
        assert baseline is not None
        assert len(corrected) == len(ecg_signal)

    @pytest.mark.parametrize("method", ['morphological', 'wavelet'])
    def test_alternative_methods_preserve_length(self, method, ecg_signal, sampling_rate):
        corrected, _ = BaselineCorrector(method=method, sampling_rate=sampling_rate).correct(ecg_signal)
        assert len(corrected) == len(ecg_signal)
        assert np.all(np.isfinite(corrected))


class TestRPeakDetector:
    """Tests for Pan-Tompkins R-peak detection."""

    def test_derivative_of_ramp(self):
        fs = 250.0
        x = 0.5 * np.arange(20, dtype=float)
        y = RPeakDetector.derivative(x, fs)
        assert np.allclose(y[2:-2], 0.5 * fs)
        assert y[0] == 0.0 and y[-1] == 0.0

    def test_moving_average_of_constant(self):
        y = RPeakDetector.moving_average(np.ones(50), 10)
        assert np.allclose(y, 1.0)

    def test_short_signal_returns_no_peaks(self):
        peaks, _ = RPeakDetector().detect(np.array([1.0, 2.0, 3.0]))
        assert len(peaks) == 0

    def test_adaptive_peaks_respects_refractory(self):
        detector = RPeakDetector(sampling_rate=100.0, refractory_period=0.2)
        envelope = np.zeros(300)
        envelope[[50, 60, 150, 250]] = [1.0, 0.9, 1.0, 1.0]
        peaks = detector.adaptive_peaks(envelope)
        # 60 falls inside the 20-sample refractory window of 50
        assert list(peaks) == [50, 150, 250]

    def test_adaptive_peaks_threshold(self):
        detector = RPeakDetector(sampling_rate=100.0)
        envelope = np.zeros(300)
        envelope[[50, 150, 250]] = [1.0, 0.2, 1.0]
        assert list(detector.adaptive_peaks(envelope)) == [50, 250]

    def test_detects_synthetic_beats(self, ecg_signal, sampling_rate):
        peaks, features = RPeakDetector(sampling_rate=sampling_rate).detect(
            ecg_signal, return_features=True)
        assert 18 <= len(peaks) <= 28
        assert features['heart_rate'] == pytest.approx(72.0, abs=8.0)
        assert set(features) >= {'filtered', 'differentiated', 'squared', 'integrated'}

    def test_invalid_decay(self):
        with pytest.raises(ValueError):
            RPeakDetector(threshold_decay=1.5)


class TestBeatSegmenter:
    """Tests for beat segmentation."""

    def test_edge_windows_dropped(self):
        segmenter = BeatSegmenter(sampling_rate=100.0, pre_r=0.2, post_r=0.4, target_length=64)
        signal = np.sin(np.linspace(0, 20, 500))
        beats, info = segmenter.segment(signal, np.array([5, 100, 200, 480]))
        assert beats.shape == (2, 64)
        assert [b['r_peak'] for b in info] == [100, 200]

    def test_no_peaks(self):
        beats, info = BeatSegmenter(target_length=32).segment(np.zeros(100), np.array([]))
        assert beats.shape == (0, 32)
        assert info == []

    def test_zscore_floor(self):
        z = BeatSegmenter.zscore(np.full(10, 3.0))
        assert np.all(np.isfinite(z))
        assert np.allclose(z, 0.0)

    def test_resample_endpoints(self):
        beat = np.array([0.0, 1.0, 4.0])
        resampled = BeatSegmenter.resample(beat, 5)
        assert resampled[0] == 0.0 and resampled[-1] == 4.0
        assert len(resampled) == 5

    def test_beat_duration(self):
        assert BeatSegmenter(pre_r=0.2, post_r=0.4).beat_duration == pytest.approx(0.6)


class TestWaveletDenoiser:

    def test_preserves_length(self, ecg_signal):
        denoised, _ = WaveletDenoiser().denoise(ecg_signal)
        assert len(denoised) == len(ecg_signal)


class TestSignalPreprocessor:
    """Tests for the preprocessing pipeline."""

    def test_synthetic_recording(self, ecg_signal, sampling_rate):
        result = SignalPreprocessor(PreprocessingConfig(sampling_rate=sampling_rate)).process(ecg_signal)
        assert result.is_valid()
        assert result.failure_reason is None
        assert result.beats.shape[1] == 256
        assert result.n_beats >= 15
        assert result.heart_rate == pytest.approx(72.0, abs=8.0)
        assert 0.0 <= result.signal_quality <= 1.0

    def test_short_input_fails_soft(self):
        result = SignalPreprocessor().process(np.array([1.0, 2.0, 3.0]))
        assert not result.is_valid()
        assert result.n_beats == 0
        assert result.failure_reason

    def test_flat_input_fails_soft(self):
        result = SignalPreprocessor().process(np.zeros(1000))
        assert not result.is_valid()

    def test_non_finite_input(self):
        signal = np.ones(500)
        signal[10] = np.nan
        result = SignalPreprocessor().process(signal)
        assert not result.is_valid()

    def test_denoising_option(self, ecg_signal, sampling_rate):
        config = PreprocessingConfig(sampling_rate=sampling_rate, enable_denoising=True)
        result = SignalPreprocessor(config).process(ecg_signal)
        assert len(result.denoised_signal) == len(ecg_signal)

    def test_deterministic(self, ecg_signal):
        a = SignalPreprocessor().process(ecg_signal)
        b = SignalPreprocessor().process(ecg_signal)
        assert np.array_equal(a.beats, b.beats)
        assert np.array_equal(a.r_peaks, b.r_peaks)
