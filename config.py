"""
spectral-dissonance - Configuration

Driver-level tunables for the command-line host: framing, preprocessing,
output formatting and versions. Every default value includes rationale.

Kernel parameters (smoothing filter, peak picking, roughness curve) live
in dissonance/kernel_params.py and are never read from this module.
"""

from typing import List

# =============================================================================
# FRAMING PARAMETERS
# =============================================================================

# FFT block size M (samples)
# Why: 1024 samples at 44100 Hz ≈ 23ms window, 43 Hz bin spacing. Fine enough
#      to separate partials a semitone apart above ~700 Hz while keeping the
#      pairwise roughness sum local in time.
BLOCK_SIZE: int = 1024

# Step size between successive blocks (samples)
# Why: Half the block size gives 50% overlap, the usual choice for a
#      periodic Hann window (overlapping windows sum to a constant).
STEP_SIZE: int = 512

# Analysis window name passed to scipy.signal.get_window
# Why: Hann keeps side lobes low so that leakage does not create spurious
#      peaks next to strong partials.
WINDOW: str = 'hann'

# =============================================================================
# PREPROCESSING PARAMETERS
# =============================================================================

# Normalization method: 'peak' or 'none'
# Why: Dissonance scales with the product of partial magnitudes, so peak
#      normalization makes values comparable across recordings of different
#      levels. 'none' keeps the raw amplitude for calibrated input.
NORMALIZATION_METHOD: str = 'peak'

# Mono conversion method for multi-channel files
# Why: The plugin accepts exactly one channel; averaging keeps energy from
#      both sides of a stereo mix.
MONO_METHOD: str = 'average'

# Supported input file extensions
# Why: scipy.io.wavfile reads WAV only
SUPPORTED_EXTENSIONS: List[str] = ['.wav']

# Maximum track duration to process (seconds)
# Why: 600 seconds (10 minutes) covers most tracks; the roughness sum is
#      evaluated in pure Python per block, so very long files are slow.
MAX_TRACK_DURATION_SEC: float = 600.0

# Minimum track duration to process (seconds)
# Why: Anything shorter than one block is a single zero-padded frame and
#      rarely meaningful. 10ms still allows short test signals.
MIN_TRACK_DURATION_SEC: float = 0.01

# =============================================================================
# DEMO PARAMETERS
# =============================================================================

# Sample rate for synthetic demo signals (Hz)
# Why: Matches the reference scenarios (Fs = 44100, M = 1024)
DEMO_SAMPLE_RATE: int = 44100

# Duration of each synthetic demo signal (seconds)
# Why: 2 seconds gives ~170 blocks at the default step, enough for a
#      stable mean without slowing the demo down.
DEMO_DURATION_SEC: float = 2.0

# Base frequency of the demo dyads (Hz)
# Why: A4, a familiar reference; the minor second above it (466 Hz) sits
#      inside the critical band where roughness peaks.
DEMO_BASE_FREQ_HZ: float = 440.0

# =============================================================================
# OUTPUT PARAMETERS
# =============================================================================

# JSON schema version
# Why: Versioning allows future format changes while maintaining compatibility
SCHEMA_VERSION: str = "1.0.0"

# Kernel version (algorithm version, bump when DSP logic changes)
# Why: Allows tracking which algorithm version produced specific outputs
KERNEL_VERSION: str = "2.0.0"

# Plot resolution (dots per inch)
# Why: 150 DPI is good balance of quality and file size for screen viewing
PLOT_DPI: int = 150

# Plot figure size (width, height in inches)
# Why: Two stacked timelines (linear and log); wider than tall for time axis
PLOT_FIGSIZE: tuple = (14, 7)

# Number of partials listed per frame in verbose console output
# Why: The top few partials are enough to see why a frame is rough
VERBOSE_MAX_PARTIALS: int = 5


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def get_frame_duration_sec(sample_rate: int, block_size: int = BLOCK_SIZE) -> float:
    """
    Duration of one analysis block in seconds.

    Parameters:
        sample_rate: Sample rate (Hz)
        block_size: FFT block size (samples)

    Returns:
        Block duration in seconds
    """
    return block_size / sample_rate


def get_bin_spacing_hz(sample_rate: int, block_size: int = BLOCK_SIZE) -> float:
    """Frequency distance between neighbouring FFT bins."""
    return sample_rate / block_size


def is_power_of_two(n: int) -> bool:
    return n > 0 and (n & (n - 1)) == 0


def validate_config() -> bool:
    """
    Validate configuration parameters for consistency.

    Returns:
        True if config is valid

    Raises:
        ValueError: If configuration is invalid
    """
    if not is_power_of_two(BLOCK_SIZE):
        raise ValueError(f"BLOCK_SIZE must be a power of two, got {BLOCK_SIZE}")

    if STEP_SIZE <= 0 or STEP_SIZE > BLOCK_SIZE:
        raise ValueError("STEP_SIZE must be in (0, BLOCK_SIZE]")

    if NORMALIZATION_METHOD not in ('peak', 'none'):
        raise ValueError(f"Unknown NORMALIZATION_METHOD: {NORMALIZATION_METHOD}")

    if MONO_METHOD not in ('average', 'left', 'right'):
        raise ValueError(f"Unknown MONO_METHOD: {MONO_METHOD}")

    if MAX_TRACK_DURATION_SEC <= MIN_TRACK_DURATION_SEC:
        raise ValueError("MAX_TRACK_DURATION_SEC must exceed MIN_TRACK_DURATION_SEC")

    if DEMO_SAMPLE_RATE <= 0 or DEMO_DURATION_SEC <= 0:
        raise ValueError("Demo sample rate and duration must be positive")

    if PLOT_DPI <= 0:
        raise ValueError("PLOT_DPI must be positive")

    return True


# Validate on import
validate_config()
