"""
Timebase Module - Frame Grid Utilities

Provides deterministic frame count and time axis computation for the
block-push host.

DESIGN CONSTRAINTS:
- Frame i starts at sample i * step_size
- Frames run past the end of the signal and are zero padded there
- Deterministic: same inputs -> same outputs
- No external config imports (explicit parameters for C++ portability)

FRAME GRID:
- Frame count: n = ceil(n_samples / step_size) for n_samples > 0, else 0
- Frame time: t[i] = i * step_size / sample_rate (start of the frame)
- Every frame start lies inside the signal: t[n-1] < n_samples / sample_rate
"""

import numpy as np
from typing import Tuple


# =============================================================================
# VERSION
# =============================================================================

# Timebase version - bump when frame/time calculation logic changes
TIMEBASE_VERSION: str = "1"


# =============================================================================
# CORE FUNCTIONS
# =============================================================================

def compute_frame_count(n_samples: int, step_size: int) -> int:
    """
    Number of frames needed so that every sample starts or falls in a frame.

    CONTRACT:
    - Input: n_samples >= 0, step_size > 0
    - Output: ceil(n_samples / step_size), 0 for empty input
    - Guarantee: (n - 1) * step_size < n_samples

    Parameters:
        n_samples: Signal length in samples
        step_size: Hop between frame starts in samples

    Returns:
        Number of frames

    Raises:
        ValueError: If step_size is not positive
    """
    if step_size <= 0:
        raise ValueError(f"step_size must be positive, got {step_size}")
    if n_samples <= 0:
        return 0
    return (n_samples + step_size - 1) // step_size


def compute_frame_times(n_frames: int, step_size: int, sample_rate: float) -> np.ndarray:
    """
    Frame start times in seconds.

    Parameters:
        n_frames: Number of frames
        step_size: Hop between frame starts in samples
        sample_rate: Sample rate (Hz)

    Returns:
        Array of frame times (n_frames,), dtype float64
    """
    if n_frames <= 0:
        return np.array([], dtype=np.float64)
    return np.arange(n_frames, dtype=np.float64) * step_size / float(sample_rate)


def frame_index_to_time(frame_idx: int, step_size: int, sample_rate: float) -> float:
    """Start time of a single frame in seconds."""
    return float(frame_idx * step_size / float(sample_rate))


def frame_bounds(frame_idx: int, step_size: int, block_size: int) -> Tuple[int, int]:
    """
    Sample range [start, end) covered by a frame.

    The end may exceed the signal length; the host zero pads.
    """
    start = frame_idx * step_size
    return start, start + block_size


def frame_sample_range(
    frame_idx: int,
    step_size: int,
    block_size: int,
    n_samples: int
) -> Tuple[int, int]:
    """
    Sample range [start, end) of a frame clipped to the signal.

    Returns:
        Tuple of (start, end) with 0 <= start <= end <= n_samples
    """
    start, end = frame_bounds(frame_idx, step_size, block_size)
    start = min(start, n_samples)
    end = min(end, n_samples)
    return start, end
