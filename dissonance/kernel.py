"""
DSP Kernel Module - Spectral Dissonance Pipeline

This module contains the deterministic per-frame dissonance estimator.
All functions are designed for line-by-line C++ portability.

DESIGN CONSTRAINTS:
- No I/O operations (no file reading/writing)
- No plotting or visualization
- No host/plugin plumbing (see dissonance/plugin.py)
- Explicit state management: the only state is the smoothing filter
  owned by DissonanceEvaluator
- No config module imports - all parameters are explicit
- Only numpy dependencies (plus the in-package filter engine)

PROCESSING PIPELINE (one FFT block):
1. Magnitude extraction (interleaved re/im -> M/2 magnitudes, bin 0 ignored)
2. Backward-forward low-pass smoothing of the magnitudes
3. Half-wave rectification of the smoothed spectrum
4. First difference of the raw magnitudes
5. Peak detection (slope sign change beyond a threshold)
6. Top-K partials by magnitude, re-sorted by frequency
7. Plomp-Levelt roughness summed over every pair of partials

INDEXING:
- magnitudes[k] holds FFT bin k + 1 at frequency (k + 1) * Fs / M
- A peak is reported as its bin number in [1, M/2]
- Reads one past the end of the magnitudes (reversal, difference) see 0.0

NOTE: The smoothed spectrum is computed and rectified but peak picking
reads the raw magnitudes. Output values depend only on the raw spectrum;
the smoothing pass still advances the filter state every block.
"""

import math
import warnings
from dataclasses import dataclass, field
from typing import List

import numpy as np

from dissonance.iirfilter import IIRFilter, filter_backward_forward
from dissonance.kernel_params import (
    DissonanceConfig,
    DEFAULT_CONFIG,
    RoughnessParams,
    validate_config,
)


class NoPeaksWarning(UserWarning):
    """No spectral peaks were found in a block."""


# =============================================================================
# DATA CONTAINERS
# =============================================================================

@dataclass
class SpectrumFrame:
    """
    Magnitude spectrum of one block.

    For C++ port: two std::vector<double> of length M/2.

    Attributes:
        magnitudes: |X[k]| / (M/2) for bins 1..M/2
        frequencies: bin frequencies in Hz for bins 1..M/2
    """
    magnitudes: np.ndarray
    frequencies: np.ndarray

    def __len__(self) -> int:
        return len(self.magnitudes)


@dataclass
class PartialList:
    """
    Selected partials, sorted by ascending frequency.

    Attributes:
        frequencies: Partial frequencies in Hz
        magnitudes: Partial magnitudes (same length as frequencies)
    """
    frequencies: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=np.float64))
    magnitudes: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=np.float64))

    def __len__(self) -> int:
        return len(self.frequencies)

    def pairs(self) -> List[tuple]:
        """(frequency, magnitude) tuples in frequency order."""
        return [(float(f), float(m)) for f, m in zip(self.frequencies, self.magnitudes)]


@dataclass
class DissonanceResult:
    """
    Everything the pipeline produced for one block.

    Attributes:
        value: Summed roughness D (0.0 when no peaks were found)
        spectrum: Raw magnitude spectrum
        smoothed: Rectified backward-forward smoothed magnitudes
        peak_bins: Detected peak bins, ascending
        partials: Top-K partials in frequency order
    """
    value: float
    spectrum: SpectrumFrame
    smoothed: np.ndarray
    peak_bins: List[int]
    partials: PartialList

    @property
    def has_peaks(self) -> bool:
        return len(self.peak_bins) > 0

    @property
    def is_finite(self) -> bool:
        return math.isfinite(self.value)


# =============================================================================
# PIPELINE STAGES
# =============================================================================

def extract_spectrum(
    fft_block: np.ndarray,
    sample_rate: float,
    block_size: int
) -> SpectrumFrame:
    """
    Compute normalized magnitudes and bin frequencies of one FFT block.

    CONTRACT:
    - Input: fft_block interleaved (re, im) pairs, length >= block_size + 2
    - Input: block_size M, even and positive
    - Output: SpectrumFrame with M/2 magnitudes and frequencies
    - magnitudes[k] = sqrt(re^2 + im^2) / (M/2) for bin k + 1
    - frequencies[k] = (k + 1) * sample_rate / M
    - Bin 0 (DC) is ignored
    - Deterministic: same input -> same output

    C++ PORT NOTES:
    - Bin i lives at fft_block[2*i] (re) and fft_block[2*i + 1] (im)
    - Compute in double even when the host hands over floats

    Parameters:
        fft_block: Interleaved FFT coefficients for one channel
        sample_rate: Sample rate (Hz)
        block_size: FFT size M

    Returns:
        SpectrumFrame for bins 1..M/2

    Raises:
        ValueError: If block_size is not even and positive or the block is too short
    """
    if block_size <= 0 or block_size % 2:
        raise ValueError(f"block_size must be even and positive, got {block_size}")

    block = np.asarray(fft_block)
    if len(block) < block_size + 2:
        raise ValueError(
            f"FFT block too short: need {block_size + 2} values, got {len(block)}"
        )

    half = block_size // 2
    real = block[2:block_size + 2:2].astype(np.float64)
    imag = block[3:block_size + 2:2].astype(np.float64)

    magnitudes = np.sqrt(real * real + imag * imag) / half
    frequencies = np.arange(1, half + 1, dtype=np.float64) * sample_rate / block_size

    return SpectrumFrame(magnitudes=magnitudes, frequencies=frequencies)


def smooth_spectrum(lpf: IIRFilter, magnitudes: np.ndarray) -> np.ndarray:
    """
    Backward-forward low-pass smoothing of a magnitude spectrum.

    CONTRACT:
    - Input: magnitudes of length n (= M/2)
    - Output: smoothed array of length n
    - The reversal covers n + 1 indices (the value past the end is 0.0)
      while each filter pass processes n samples
    - lpf state is shared by both passes and carried into the next call

    Parameters:
        lpf: Low-pass filter (state mutated)
        magnitudes: Magnitude spectrum

    Returns:
        Smoothed magnitudes (not rectified)
    """
    n = len(magnitudes)
    extended = np.zeros(n + 1, dtype=np.float64)
    extended[:n] = magnitudes
    smoothed = filter_backward_forward(lpf, extended, n_samples=n)
    return smoothed[:n]


def half_wave_rectify(signal: np.ndarray) -> np.ndarray:
    """Clamp negative samples to zero."""
    return np.maximum(signal, 0.0)


def spectral_difference(magnitudes: np.ndarray) -> np.ndarray:
    """
    First difference of the magnitude spectrum along frequency.

    CONTRACT:
    - Input: magnitudes of length n
    - Output: (n + 1,) array
    - diffs[0] = 0
    - diffs[i] = magnitudes[i] - magnitudes[i - 1] for 1 <= i < n
    - diffs[n] = 0.0 - magnitudes[n - 1] (value past the end is 0.0)

    Parameters:
        magnitudes: Magnitude spectrum

    Returns:
        Array of differences
    """
    n = len(magnitudes)
    diffs = np.zeros(n + 1, dtype=np.float64)
    if n == 0:
        return diffs
    diffs[1:n] = magnitudes[1:] - magnitudes[:-1]
    diffs[n] = 0.0 - magnitudes[n - 1]
    return diffs


def detect_peaks(diffs: np.ndarray, threshold: float = 1e-9) -> List[int]:
    """
    Find peaks as rising-then-falling slope pairs.

    CONTRACT:
    - Input: diffs from spectral_difference (length n + 1)
    - Output: ascending list of bins i in [1, n]
    - Bin i is a peak iff diffs[i - 1] > threshold and diffs[i] < -threshold
    - Flat tops (equal neighbours) are not peaks

    C++ PORT NOTES:
    - Single forward loop, push_back into std::vector<size_t>

    Parameters:
        diffs: Spectral differences
        threshold: Minimum slope magnitude on each side

    Returns:
        List of peak bin numbers
    """
    peak_bins = []
    for i in range(1, len(diffs)):
        if diffs[i - 1] > threshold and diffs[i] < -threshold:
            peak_bins.append(i)
    return peak_bins


def select_partials(
    spectrum: SpectrumFrame,
    peak_bins: List[int],
    max_partials: int = 20
) -> PartialList:
    """
    Keep the strongest peaks and order them by frequency.

    CONTRACT:
    - Output: PartialList with min(len(peak_bins), max_partials) entries
    - Peaks are ranked by descending magnitude; ties keep ascending bin order
    - Selected partials are sorted by ascending frequency

    Parameters:
        spectrum: Magnitude spectrum the peaks were detected in
        peak_bins: Peak bin numbers (1-based)
        max_partials: Maximum number of partials K

    Returns:
        PartialList in frequency order
    """
    if not peak_bins:
        return PartialList()

    indices = np.asarray(peak_bins, dtype=np.int64) - 1
    peak_mags = spectrum.magnitudes[indices]

    # Descending magnitude, stable for ties
    by_magnitude = np.argsort(-peak_mags, kind='stable')
    n_partials = min(len(peak_bins), max_partials)
    chosen = indices[by_magnitude[:n_partials]]

    freqs = spectrum.frequencies[chosen]
    by_frequency = np.argsort(freqs, kind='stable')
    chosen = chosen[by_frequency]

    return PartialList(
        frequencies=spectrum.frequencies[chosen].copy(),
        magnitudes=spectrum.magnitudes[chosen].copy()
    )


def roughness_kernel(
    freq_low: float,
    freq_high: float,
    amp_low: float,
    amp_high: float,
    params: RoughnessParams = RoughnessParams()
) -> float:
    """
    Plomp-Levelt roughness of one pair of partials.

    d = a_low * a_high * (c1 * exp(b1 * S * df) + c2 * exp(b2 * S * df))
    with S = d_star / (s1 * freq_low + s2) and df = freq_high - freq_low.

    The lower partial sets the critical-band scale S.
    """
    s = params.d_star / (params.s1 * freq_low + params.s2)
    fdif = freq_high - freq_low
    am = amp_high * amp_low
    return am * (params.c1 * math.exp(params.b1 * s * fdif) +
                 params.c2 * math.exp(params.b2 * s * fdif))


def compute_dissonance(
    partials: PartialList,
    params: RoughnessParams = RoughnessParams()
) -> float:
    """
    Sum the roughness kernel over every unordered pair of partials.

    CONTRACT:
    - Input: partials sorted by ascending frequency
    - Output: D (float); 0.0 for fewer than two partials
    - Outer loop i = 1..K-1 is the pair distance in list positions,
      inner loop j = 0..K-1-i the lower partial
    - May be NaN/inf if magnitudes are non-finite

    C++ PORT NOTES:
    - Keep the i/j loop order for identical summation order

    Parameters:
        partials: Partials in frequency order
        params: Roughness curve parameters

    Returns:
        Dissonance value D
    """
    freqs = [float(f) for f in partials.frequencies]
    mags = [float(m) for m in partials.magnitudes]
    n = len(freqs)

    diss_val = 0.0
    for i in range(1, n):
        for j in range(0, n - i):
            diss_val += roughness_kernel(freqs[j], freqs[j + i], mags[j], mags[j + i], params)

    return diss_val


# =============================================================================
# STATEFUL EVALUATOR
# =============================================================================

class DissonanceEvaluator:
    """
    Per-block dissonance estimator owning the smoothing filter.

    For C++ port: class holding one FILTER* created at construction.

    CONTRACT:
    - The low-pass filter is built once and never reset between blocks
    - Nothing else survives from one block to the next
    - Call reset() to zero the filter state
    - Thread-safe if accessed from single thread
    """

    def __init__(self, sample_rate: float, config: DissonanceConfig = DEFAULT_CONFIG) -> None:
        validate_config(config)
        self.sample_rate: float = float(sample_rate)
        self.config: DissonanceConfig = config
        self.lpf: IIRFilter = IIRFilter(config.smoothing.filter_spec())

    def reset(self) -> None:
        """Reset the smoothing filter to its initial state."""
        self.lpf.reset()

    def evaluate(self, fft_block: np.ndarray, block_size: int) -> DissonanceResult:
        """
        Run the full pipeline on one FFT block.

        Emits NoPeaksWarning and returns value 0.0 when no peaks are found.

        Parameters:
            fft_block: Interleaved (re, im) FFT coefficients, length >= M + 2
            block_size: FFT size M

        Returns:
            DissonanceResult for the block
        """
        spectrum = extract_spectrum(fft_block, self.sample_rate, block_size)

        smoothed = half_wave_rectify(smooth_spectrum(self.lpf, spectrum.magnitudes))

        # Peak picking reads the raw magnitudes, not the smoothed spectrum
        diffs = spectral_difference(spectrum.magnitudes)
        peak_bins = detect_peaks(diffs, self.config.peaks.threshold)

        if not peak_bins:
            warnings.warn("zero-length peak list, dissonance set to 0.0", NoPeaksWarning)
            return DissonanceResult(
                value=0.0,
                spectrum=spectrum,
                smoothed=smoothed,
                peak_bins=[],
                partials=PartialList()
            )

        partials = select_partials(spectrum, peak_bins, self.config.peaks.max_partials)
        value = compute_dissonance(partials, self.config.roughness)

        return DissonanceResult(
            value=value,
            spectrum=spectrum,
            smoothed=smoothed,
            peak_bins=peak_bins,
            partials=partials
        )
