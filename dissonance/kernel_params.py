"""
Kernel Parameters Module - All Tunable Constants

These parameters control the dissonance pipeline and must stay
synchronized with any native port of the kernel.

For C++ port: Each dataclass becomes a struct with the same fields.

USAGE:
    from dissonance.kernel_params import DissonanceConfig, DEFAULT_CONFIG

    # Use default config
    config = DEFAULT_CONFIG

    # Create custom config
    custom = DissonanceConfig(
        peaks=PeakParams(max_partials=10)
    )
"""

from dataclasses import dataclass, field
from typing import Dict, Tuple

from dissonance.iirfilter import FilterSpec, InvalidFilterOrder


# Butterworth low-pass, cutoff 0.25 * Nyquist (scipy.signal.butter design)
LOWPASS_B: Tuple[float, ...] = (
    1.10559099e-05, 1.10559099e-04, 4.97515946e-04,
    1.32670919e-03, 2.32174108e-03, 2.78608930e-03,
    2.32174108e-03, 1.32670919e-03, 4.97515946e-04,
    1.10559099e-04, 1.10559099e-05,
)
LOWPASS_A: Tuple[float, ...] = (
    1.00000000e+00, -4.98698526e+00, 1.19364368e+01,
    -1.77423718e+01, 1.79732280e+01, -1.28862417e+01,
    6.59320221e+00, -2.36909169e+00, 5.70632706e-01,
    -8.30176785e-02, 5.52971437e-03,
)


@dataclass(frozen=True)
class SmoothingParams:
    """
    Spectral smoothing filter coefficients.

    For C++ port: struct SmoothingParams { double b[11]; double a[11]; };

    Attributes:
        b: Numerator coefficients (11 taps)
        a: Denominator coefficients including a[0] = 1 (11 taps)
    """
    b: Tuple[float, ...] = LOWPASS_B
    a: Tuple[float, ...] = LOWPASS_A

    def filter_spec(self) -> FilterSpec:
        """Packed filter spec with a[0] dropped."""
        return FilterSpec.from_ba(self.b, self.a)


@dataclass(frozen=True)
class PeakParams:
    """
    Peak picking parameters.

    For C++ port: struct PeakParams { double threshold; int max_partials; };

    Attributes:
        threshold: Minimum |slope| on both sides of a peak (default 1e-9)
        max_partials: Number of strongest peaks kept as partials (default 20)
    """
    threshold: float = 1e-9
    max_partials: int = 20


@dataclass(frozen=True)
class RoughnessParams:
    """
    Plomp-Levelt roughness curve parameters (Sethares parameterization).

    For C++ port: struct RoughnessParams { double b1, b2, s1, s2, c1, c2, d_star; };

    Attributes:
        b1, b2: Exponential decay rates of the two curve terms
        s1, s2: Critical-band scaling, S(f) = d_star / (s1 * f + s2)
        c1, c2: Weights of the two exponential terms
        d_star: Scaled frequency difference of maximum roughness
    """
    b1: float = -3.51
    b2: float = -5.75
    s1: float = 0.0207
    s2: float = 19.96
    c1: float = 5.0
    c2: float = -5.0
    d_star: float = 0.24


@dataclass
class DissonanceConfig:
    """
    Complete kernel configuration aggregating all parameter groups.

    Example usage:
        config = DissonanceConfig()  # All defaults
        config = DissonanceConfig(peaks=PeakParams(threshold=1e-6))
    """
    smoothing: SmoothingParams = field(default_factory=SmoothingParams)
    peaks: PeakParams = field(default_factory=PeakParams)
    roughness: RoughnessParams = field(default_factory=RoughnessParams)

    def to_dict(self) -> Dict:
        """
        Export all parameters as a flat dictionary for JSON serialization.

        Returns:
            Dictionary with all parameter values
        """
        return {
            # Smoothing params
            'lowpass_b': list(self.smoothing.b),
            'lowpass_a': list(self.smoothing.a),

            # Peak params
            'peak_threshold': self.peaks.threshold,
            'max_partials': self.peaks.max_partials,

            # Roughness params
            'roughness_b1': self.roughness.b1,
            'roughness_b2': self.roughness.b2,
            'roughness_s1': self.roughness.s1,
            'roughness_s2': self.roughness.s2,
            'roughness_c1': self.roughness.c1,
            'roughness_c2': self.roughness.c2,
            'roughness_d_star': self.roughness.d_star,
        }


# Default configuration instance
DEFAULT_CONFIG = DissonanceConfig()


def validate_config(config: DissonanceConfig) -> bool:
    """
    Validate configuration parameters for consistency.

    Parameters:
        config: DissonanceConfig instance to validate

    Returns:
        True if config is valid

    Raises:
        ValueError: If configuration is invalid
    """
    if config.peaks.threshold < 0:
        raise ValueError("peak threshold must be non-negative")
    if config.peaks.max_partials < 1:
        raise ValueError("max_partials must be >= 1")

    if len(config.smoothing.b) == 0:
        raise ValueError("smoothing filter needs at least one numerator coefficient")
    try:
        config.smoothing.filter_spec().validate()
    except InvalidFilterOrder as e:
        raise ValueError(f"smoothing filter is invalid: {e}") from e

    # S(f) denominator must stay positive over the audible range
    if config.roughness.s2 <= 0 or config.roughness.s1 < 0:
        raise ValueError("roughness s1 must be >= 0 and s2 > 0")
    if config.roughness.d_star <= 0:
        raise ValueError("roughness d_star must be positive")

    return True


# Validate default config on import
validate_config(DEFAULT_CONFIG)
