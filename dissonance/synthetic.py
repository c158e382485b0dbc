"""
Synthetic Signal Generators

Deterministic test signals with known spectral content, used by the demo
mode, the fixture generator and the test suite.
"""

import numpy as np
from typing import Dict, List, Sequence


# Just-intonation ratios for the demo dyads
UNISON: float = 1.0
MINOR_SECOND: float = 16.0 / 15.0
MAJOR_THIRD: float = 5.0 / 4.0
PERFECT_FIFTH: float = 3.0 / 2.0
OCTAVE: float = 2.0


def _sum_of_sines(freqs, amps, n_samples, sr):
    t = np.arange(n_samples) / sr
    audio = np.zeros(n_samples, dtype=np.float64)
    for freq, amp in zip(freqs, amps):
        audio += amp * np.sin(2 * np.pi * freq * t)
    return audio


def generate_tone_mix(
    freqs: Sequence[float],
    amps: Sequence[float],
    duration: float = 2.0,
    sr: int = 44100
) -> np.ndarray:
    """
    Sum of sines with zero initial phase.

    Parameters:
        freqs: Tone frequencies in Hz
        amps: Tone amplitudes (same length as freqs)
        duration: Duration in seconds
        sr: Sample rate (Hz)

    Returns:
        float32 signal
    """
    if len(freqs) != len(amps):
        raise ValueError("freqs and amps must have the same length")

    return _sum_of_sines(freqs, amps, int(duration * sr), sr).astype(np.float32)


def generate_dyad(
    base_freq: float = 440.0,
    ratio: float = PERFECT_FIFTH,
    duration: float = 2.0,
    sr: int = 44100,
    amplitude: float = 0.4
) -> np.ndarray:
    """Two equal-amplitude sines at base_freq and base_freq * ratio."""
    return generate_tone_mix([base_freq, base_freq * ratio], [amplitude, amplitude], duration, sr)


def generate_harmonic_stack(
    f0: float = 220.0,
    n_harmonics: int = 4,
    duration: float = 2.0,
    sr: int = 44100
) -> np.ndarray:
    """Harmonics k * f0 with 1/k amplitudes, peak normalized."""
    freqs = [k * f0 for k in range(1, n_harmonics + 1)]
    amps = [1.0 / k for k in range(1, n_harmonics + 1)]
    audio = generate_tone_mix(freqs, amps, duration, sr)
    return (audio / np.max(np.abs(audio))).astype(np.float32)


def generate_bin_centered_tones(
    bins: Sequence[int],
    amps: Sequence[float],
    block_size: int = 1024,
    n_samples: int = 8192,
    sr: int = 44100
) -> np.ndarray:
    """
    Sines placed exactly on FFT bin centres (bin * sr / block_size).

    Frames starting at multiples of block_size hold whole cycles.

    Returns:
        float64 signal of exactly n_samples samples
    """
    if len(bins) != len(amps):
        raise ValueError("bins and amps must have the same length")
    freqs = [b * sr / block_size for b in bins]
    return _sum_of_sines(freqs, amps, n_samples, sr)


def demo_tracks(
    sr: int = 44100,
    duration: float = 2.0,
    base_freq: float = 440.0
) -> List[Dict]:
    """
    Demo signals ordered from smooth to rough.

    Returns:
        List of dicts with 'name', 'description' and 'audio'
    """
    return [
        {
            'name': 'demo_unison',
            'description': 'Single tone (unison)',
            'audio': generate_dyad(base_freq, UNISON, duration, sr)
        },
        {
            'name': 'demo_fifth',
            'description': 'Perfect fifth dyad (3:2)',
            'audio': generate_dyad(base_freq, PERFECT_FIFTH, duration, sr)
        },
        {
            'name': 'demo_minor_second',
            'description': 'Minor second dyad (16:15)',
            'audio': generate_dyad(base_freq, MINOR_SECOND, duration, sr)
        },
        {
            'name': 'demo_harmonic_stack',
            'description': 'Four-harmonic stack on half the base frequency',
            'audio': generate_harmonic_stack(base_freq / 2, 4, duration, sr)
        },
    ]


def make_fft_block(
    bin_values: Dict[int, complex],
    block_size: int = 1024
) -> np.ndarray:
    """
    Build an interleaved float32 FFT block directly from bin values.

    Parameters:
        bin_values: Mapping bin index -> complex coefficient (unlisted bins are 0)
        block_size: FFT size M

    Returns:
        float32 array of length M + 2 (re0, im0, ..., re(M/2), im(M/2))
    """
    block = np.zeros(block_size + 2, dtype=np.float32)
    for bin_idx, value in bin_values.items():
        if bin_idx < 0 or bin_idx > block_size // 2:
            raise ValueError(f"bin {bin_idx} outside [0, {block_size // 2}]")
        block[2 * bin_idx] = np.real(value)
        block[2 * bin_idx + 1] = np.imag(value)
    return block


def reference_scenarios(block_size: int = 1024) -> List[Dict]:
    """
    Hand-built FFT blocks with known peak structure.

    Returns:
        List of dicts with 'name', 'description' and 'block'
    """
    return [
        {
            'name': 'silence',
            'description': 'All bins zero',
            'block': make_fft_block({}, block_size)
        },
        {
            'name': 'pure_tone',
            'description': 'Bin 100 only, re = 1.0',
            'block': make_fft_block({100: 1.0}, block_size)
        },
        {
            'name': 'two_tones',
            'description': 'Bins 100 and 107, re = 1.0',
            'block': make_fft_block({100: 1.0, 107: 1.0}, block_size)
        },
        {
            'name': 'harmonic_stack',
            'description': 'Bins 50, 100, 150, 200 with amplitudes 1, 0.5, 0.33, 0.25',
            'block': make_fft_block({50: 1.0, 100: 0.5, 150: 0.33, 200: 0.25}, block_size)
        },
    ]
