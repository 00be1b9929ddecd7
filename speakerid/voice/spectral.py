"""
SpectralVoiceAnalyzer: rough voice descriptors from PCM 16-bit mono using numpy.

- pitch: autocorrelation peak in the 60-400 Hz range
- spectral_centroid: power-weighted mean frequency; tone = centroid / Nyquist
- pace: share of voiced 20ms frames, mapped to 0.8-1.2
- mfcc: 13 log band energies (log-spaced bands), min-max normalised to 0-1
No formant tracking. Not a speaker-recognition model; good enough to separate
clearly different voices in demos.
"""
from __future__ import annotations

import numpy as np

from speakerid.speakers.errors import VoiceAnalysisError
from speakerid.speakers.models import FeatureVector
from speakerid.voice.base import VoiceAnalyzer, pcm_bytes_to_float32

MIN_PITCH_HZ = 60.0
MAX_PITCH_HZ = 400.0
FRAME_MS = 20
N_BANDS = 13
_SILENCE_RMS = 1e-4
_VOICED_RATIO_OF_PEAK = 0.1


class SpectralVoiceAnalyzer(VoiceAnalyzer):
    def __init__(self, sample_rate: int = 16000) -> None:
        self._sample_rate = sample_rate

    @property
    def name(self) -> str:
        return "spectral"

    def analyze(self, audio: bytes) -> FeatureVector:
        sr = self._sample_rate
        samples = pcm_bytes_to_float32(audio).astype(np.float64)
        min_len = int(sr / MIN_PITCH_HZ) * 2
        if samples.size < min_len:
            raise VoiceAnalysisError(f"audio too short: {samples.size} samples (< {min_len})")
        samples = samples - samples.mean()
        if float(np.sqrt(np.mean(samples**2))) < _SILENCE_RMS:
            raise VoiceAnalysisError("audio is silent")

        centroid, mfcc = self._spectral(samples)
        return FeatureVector(
            pitch=self._pitch(samples),
            tone=min(1.0, max(0.0, centroid / (sr / 2))),
            pace=0.8 + 0.4 * self._voiced_ratio(samples),
            spectral_centroid=centroid,
            mfcc=mfcc,
        )

    def _pitch(self, x: np.ndarray) -> float:
        sr = self._sample_rate
        n = x.size
        spectrum = np.fft.rfft(x, 2 * n)
        autocorr = np.fft.irfft(spectrum * np.conj(spectrum))[:n]
        min_lag = max(1, int(sr / MAX_PITCH_HZ))
        max_lag = min(n - 1, int(sr / MIN_PITCH_HZ))
        lag = int(np.argmax(autocorr[min_lag : max_lag + 1])) + min_lag
        return sr / lag

    def _spectral(self, x: np.ndarray) -> tuple[float, list[float]]:
        sr = self._sample_rate
        power = np.abs(np.fft.rfft(x)) ** 2
        freqs = np.fft.rfftfreq(x.size, 1.0 / sr)
        total = float(power.sum())
        centroid = float((freqs * power).sum() / total) if total > 0 else 0.0

        edges = np.geomspace(MIN_PITCH_HZ, sr / 2, N_BANDS + 1)
        energies = np.array(
            [power[(freqs >= lo) & (freqs < hi)].sum() for lo, hi in zip(edges[:-1], edges[1:])]
        )
        log_e = np.log10(energies + 1e-12)
        span = float(log_e.max() - log_e.min())
        if span <= 0:
            return centroid, [0.0] * N_BANDS
        return centroid, [float(v) for v in (log_e - log_e.min()) / span]

    def _voiced_ratio(self, x: np.ndarray) -> float:
        frame = max(1, self._sample_rate * FRAME_MS // 1000)
        n_frames = x.size // frame
        if n_frames == 0:
            return 0.0
        frames = x[: n_frames * frame].reshape(n_frames, frame)
        rms = np.sqrt(np.mean(frames**2, axis=1))
        peak = float(rms.max())
        if peak <= 0:
            return 0.0
        return float(np.mean(rms > peak * _VOICED_RATIO_OF_PEAK))
