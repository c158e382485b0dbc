"""
Host Module - Block-Push Driver

Turns a time-domain signal into the frequency-domain blocks the plugin
expects and collects the resulting features.

For each frame:
1. Slice block_size samples starting at i * step_size (zero padded at the end)
2. Apply a periodic Hann window
3. Real FFT (scipy.fft.rfft) -> M/2 + 1 complex bins
4. Pack as interleaved float32 (re, im), length M + 2
5. Push through DissonancePlugin.process with timestamp i * step_size / Fs
"""

import numpy as np
from typing import Dict, List, Optional
from scipy import signal as scipy_signal
from scipy.fft import rfft

from dissonance import timebase
from dissonance.kernel_params import DissonanceConfig, DEFAULT_CONFIG
from dissonance.plugin import DissonancePlugin, FeatureSet, LINEAR_OUTPUT, LOG_OUTPUT


def make_window(block_size: int, window: str = 'hann') -> np.ndarray:
    """Periodic (DFT-even) analysis window of length block_size."""
    return scipy_signal.get_window(window, block_size, fftbins=True)


def frame_signal(audio: np.ndarray, block_size: int, step_size: int) -> np.ndarray:
    """
    Slice a signal into overlapping frames.

    Parameters:
        audio: Mono signal
        block_size: Frame length M
        step_size: Hop between frames

    Returns:
        Array of shape (n_frames, block_size), zero padded past the end
    """
    n_samples = len(audio)
    n_frames = timebase.compute_frame_count(n_samples, step_size)
    frames = np.zeros((n_frames, block_size), dtype=np.float64)

    for i in range(n_frames):
        start, end = timebase.frame_sample_range(i, step_size, block_size, n_samples)
        frames[i, :end - start] = audio[start:end]

    return frames


def pack_fft_block(frame: np.ndarray, window: np.ndarray) -> np.ndarray:
    """
    Window a frame and pack its spectrum the way a plugin host does.

    Returns:
        float32 array of length M + 2: re0, im0, re1, im1, ..., re(M/2), im(M/2)
    """
    spectrum = rfft(frame * window)
    packed = np.empty(2 * len(spectrum), dtype=np.float32)
    packed[0::2] = spectrum.real
    packed[1::2] = spectrum.imag
    return packed


def feature_value(feature_set: FeatureSet, output: int) -> float:
    """First value of an output's feature, NaN when the output is empty."""
    features = feature_set.get(output, [])
    if not features or not features[0].values:
        return float('nan')
    return float(features[0].values[0])


def analyse_audio(
    audio: np.ndarray,
    sample_rate: int,
    block_size: int = 1024,
    step_size: int = 512,
    config: DissonanceConfig = DEFAULT_CONFIG,
    window: str = 'hann',
    keep_partials: bool = False
) -> Dict:
    """
    Run the dissonance plugin over a whole signal.

    Parameters:
        audio: Mono signal
        sample_rate: Sample rate (Hz)
        block_size: FFT size M (even)
        step_size: Hop between frames
        config: Kernel configuration
        window: Window name for scipy.signal.get_window
        keep_partials: Keep per-frame peak bins and partials

    Returns:
        Dictionary containing:
            - 'times': frame start times (n_frames,)
            - 'linear': output 0 per frame, NaN where empty
            - 'log': output 1 per frame, NaN where empty
            - 'has_peaks': bool per frame
            - 'features': raw feature sets in frame order
            - 'partials': per-frame list of (freq, mag) tuples (keep_partials only)
            - 'peak_bins': per-frame peak bin lists (keep_partials only)

    Raises:
        ValueError: If the plugin refuses the stream geometry
    """
    plugin = DissonancePlugin(sample_rate, config)
    if not plugin.initialise(1, step_size, block_size):
        raise ValueError(
            f"Plugin refused geometry: channels=1, step={step_size}, block={block_size}"
        )

    frames = frame_signal(np.asarray(audio, dtype=np.float64), block_size, step_size)
    times = timebase.compute_frame_times(len(frames), step_size, sample_rate)
    win = make_window(block_size, window)

    n_frames = len(frames)
    linear = np.full(n_frames, np.nan, dtype=np.float64)
    log = np.full(n_frames, np.nan, dtype=np.float64)
    has_peaks = np.zeros(n_frames, dtype=bool)
    feature_sets: List[FeatureSet] = []
    partials: Optional[List[List[tuple]]] = [] if keep_partials else None
    peak_bins: Optional[List[List[int]]] = [] if keep_partials else None

    for i in range(n_frames):
        block = pack_fft_block(frames[i], win)
        feature_set = plugin.process([block], float(times[i]))
        feature_sets.append(feature_set)

        linear[i] = feature_value(feature_set, LINEAR_OUTPUT)
        log[i] = feature_value(feature_set, LOG_OUTPUT)

        result = plugin.last_result
        has_peaks[i] = result is not None and result.has_peaks
        if keep_partials:
            partials.append(result.partials.pairs() if result is not None else [])
            peak_bins.append(list(result.peak_bins) if result is not None else [])

    analysis = {
        'times': times,
        'linear': linear,
        'log': log,
        'has_peaks': has_peaks,
        'features': feature_sets,
        'sample_rate': sample_rate,
        'block_size': block_size,
        'step_size': step_size,
        'window': window,
    }
    if keep_partials:
        analysis['partials'] = partials
        analysis['peak_bins'] = peak_bins

    return analysis
