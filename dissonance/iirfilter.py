"""
IIR Filter Module - Direct-Form-II Filter Engine

General purpose IIR filtering implementing the difference equation

    y(n) = b[0]*x(n) + b[1]*x(n-1) + ... + b[Nb-1]*x(n-Nb+1)
                     - a[1]*y(n-1) - ... - a[Na]*y(n-Na)

with system function

              b[0] + b[1] z^-1 + ... + b[Nb-1] z^-(Nb-1)
    H(z) = -------------------------------------------
                1 + a[1] z^-1 + ... + a[Na] z^-Na

This is the same transfer function as scipy.signal.lfilter with a[0] = 1.

DESIGN CONSTRAINTS:
- Single circular delay line of "pole samples" w(n) = x(n) - sum(a[k] * w(n-k))
- Output y(n) = b[0] * w(n) + sum(b[k] * w(n-k))
- Delay line length Nd = max(Nb - 1, Na), exclusively owned by FilterState
- Explicit index-modulo arithmetic, no aliasing with input/output buffers
- No allocation per sample; state persists across run() calls until reset()
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np

from dissonance.complex_math import Complex, c_abs
from dissonance.roots import find_polynomial_roots, sort_by_magnitude


# =============================================================================
# CONSTANTS
# =============================================================================

MAX_ZEROS: int = 50
MAX_POLES: int = 50


class InvalidFilterOrder(ValueError):
    """Filter coefficient counts are outside the supported range."""


# =============================================================================
# FILTER SPECIFICATION
# =============================================================================

@dataclass(frozen=True)
class FilterSpec:
    """
    Filter coefficients.

    For C++ port: struct FilterSpec { int numb; int numa; double coeffs[MAX_ZEROS + 1 + MAX_POLES]; };

    Attributes:
        b: Numerator coefficients b[0..Nb-1], 1 <= Nb <= 51
        a: Denominator coefficients a[1..Na] (a[0] = 1 implied), 0 <= Na <= 50
    """
    b: Tuple[float, ...]
    a: Tuple[float, ...] = ()

    @classmethod
    def from_ba(cls, b: Sequence[float], a: Sequence[float]) -> 'FilterSpec':
        """
        Build a spec from scipy-style (b, a) with a[0] included.

        Coefficients are normalized by a[0] when it is not 1.
        """
        a = [float(v) for v in a]
        if len(a) == 0 or a[0] == 0.0:
            raise ValueError("Denominator must have a non-zero leading coefficient a[0]")
        a0 = a[0]
        return cls(
            b=tuple(float(v) / a0 for v in b),
            a=tuple(v / a0 for v in a[1:])
        )

    @property
    def numb(self) -> int:
        return len(self.b)

    @property
    def numa(self) -> int:
        return len(self.a)

    @property
    def ndelay(self) -> int:
        return max(self.numb - 1, self.numa)

    @property
    def coeffs(self) -> Tuple[float, ...]:
        """Packed coefficients: b[0..Nb-1] followed by a[1..Na]."""
        return tuple(self.b) + tuple(self.a)

    def validate(self) -> None:
        """
        Check coefficient counts.

        Raises:
            InvalidFilterOrder: If Nb not in [1, 51] or Na not in [0, 50]
        """
        if self.numb < 1 or self.numb > MAX_ZEROS + 1 or self.numa < 0 or self.numa > MAX_POLES:
            raise InvalidFilterOrder(
                f"Filter order out of bounds: (1 <= nb({self.numb}) <= {MAX_ZEROS + 1}, "
                f"0 <= na({self.numa}) <= {MAX_POLES})"
            )


# =============================================================================
# FILTER STATE AND JOB
# =============================================================================

class FilterState:
    """
    Circular delay line of pole samples.

    For C++ port: This becomes a struct owning a double[ndelay] buffer
    plus an int current position.

    CONTRACT:
    - delay is zero after construction and after reset()
    - position is always in [0, ndelay) (0 when ndelay == 0)
    - read(i) returns w(n - i) for 1 <= i <= ndelay
    """

    def __init__(self, ndelay: int) -> None:
        self.ndelay: int = ndelay
        self.delay: np.ndarray = np.zeros(ndelay, dtype=np.float64)
        self.position: int = 0

    def read(self, i: int) -> float:
        """Read the sample i steps behind the current position."""
        return float(self.delay[(self.position - i) % self.ndelay])

    def insert(self, value: float) -> None:
        """Write value at the current position and advance modulo ndelay."""
        if self.ndelay == 0:
            return
        self.delay[self.position] = value
        self.position = (self.position + 1) % self.ndelay

    def reset(self) -> None:
        """Reset state to initial values."""
        self.delay[:] = 0.0
        self.position = 0


@dataclass
class FilterJob:
    """
    One filter invocation: non-owning input/output buffers and a sample count.

    Only input[0:n_samples] is read and only output[0:n_samples] is written.
    """
    input: np.ndarray
    output: np.ndarray
    n_samples: int

    def __post_init__(self) -> None:
        if self.n_samples < 0:
            raise ValueError(f"n_samples must be non-negative, got {self.n_samples}")
        if self.n_samples > len(self.input) or self.n_samples > len(self.output):
            raise ValueError(
                f"n_samples ({self.n_samples}) exceeds buffer length "
                f"(input {len(self.input)}, output {len(self.output)})"
            )


# =============================================================================
# FILTER ENGINE
# =============================================================================

class IIRFilter:
    """
    Direct-Form-II IIR filter with a persistent circular delay line.

    For C++ port: FILTER struct with ifilter()/afilter()/kfilter()/free_filter().

    CONTRACT:
    - Construction validates the FilterSpec and allocates a zeroed delay line
    - run() filters a block; state carries over to the next call
    - reset() zeroes the delay line; free() releases it
    - Nb and Na may differ; the inner loop runs to Nd with per-branch guards
    """

    def __init__(self, spec: FilterSpec) -> None:
        spec.validate()
        self.spec: FilterSpec = spec
        self.state: Optional[FilterState] = FilterState(spec.ndelay)

    def _require_state(self) -> FilterState:
        if self.state is None:
            raise RuntimeError("Filter has been freed")
        return self.state

    def run(self, job: FilterJob) -> None:
        """
        Filter job.input[0:n] into job.output[0:n].

        CONTRACT:
        - Per sample: w = x - sum(a[i] * w(n-i-1)), y = b0 * w + sum(b[i+1] * w(n-i-1))
        - The new pole sample w is inserted after the output is formed
        - Deterministic: same state + same input -> same output

        C++ PORT NOTES:
        - Mirrors afilter(): poles first, then zeros, inside one loop over Nd
        - readFilter() becomes (pos - i) modulo Nd
        """
        state = self._require_state()
        spec = self.spec

        b0 = spec.b[0]
        b = list(spec.b[1:])
        a = list(spec.a)
        numa = spec.numa
        numb_minus_1 = spec.numb - 1
        ndelay = state.ndelay

        # Work on a local copy of the delay line, written back at the end
        delay = state.delay.tolist()
        pos = state.position

        x = job.input
        y = job.output

        for n in range(job.n_samples):
            pole_samp = float(x[n])
            zero_samp = 0.0

            for i in range(ndelay):
                delayed = delay[(pos - i - 1) % ndelay]
                # Poles first
                if i < numa:
                    pole_samp += -a[i] * delayed
                # Then zeros
                if i < numb_minus_1:
                    zero_samp += b[i] * delayed

            y[n] = b0 * pole_samp + zero_samp

            if ndelay:
                delay[pos] = pole_samp
                pos = (pos + 1) % ndelay

        state.delay[:] = delay
        state.position = pos

    def tick(self, sample: float) -> float:
        """Filter a single sample (k-rate form of run())."""
        x = np.array([sample], dtype=np.float64)
        y = np.zeros(1, dtype=np.float64)
        self.run(FilterJob(x, y, 1))
        return float(y[0])

    def reset(self) -> None:
        """Zero the delay line and current position."""
        self._require_state().reset()

    def free(self) -> None:
        """Release the delay line. Further use raises RuntimeError."""
        self.state = None

    def poles(self) -> List[Complex]:
        """
        Roots of the denominator, sorted by descending magnitude.

        The denominator 1 + a[1] z^-1 + ... + a[Na] z^-Na is multiplied by
        z^Na, giving z^Na + a[1] z^(Na-1) + ... + a[Na], whose ascending
        coefficient list is a reversed with 1 appended.

        Returns:
            List of Na poles (empty for an FIR filter)
        """
        if self.spec.numa == 0:
            return []
        ascending = list(reversed(self.spec.a)) + [1.0]
        return sort_by_magnitude(find_polynomial_roots(ascending))

    def is_stable(self) -> bool:
        """True if every pole lies strictly inside the unit circle."""
        return all(c_abs(p) < 1.0 for p in self.poles())


# =============================================================================
# HELPERS
# =============================================================================

def filter_signal(filt: IIRFilter, signal: np.ndarray) -> np.ndarray:
    """Run filt over a whole signal and return a new output array."""
    x = np.asarray(signal, dtype=np.float64)
    y = np.zeros(len(x), dtype=np.float64)
    filt.run(FilterJob(x, y, len(x)))
    return y


def filter_backward_forward(
    filt: IIRFilter,
    signal: np.ndarray,
    n_samples: Optional[int] = None
) -> np.ndarray:
    """
    Zero-phase filtering by two forward passes around a reversal.

    CONTRACT:
    - Input: signal of length L, n_samples <= L (default L)
    - Output: array of length L
    - Pass 1 filters reversed(signal)[0:n_samples]
    - The pass-1 output buffer (zero beyond n_samples) is reversed back
      over all L indices and filtered again for n_samples
    - The filter state is NOT reset between passes; the residual delay
      from the backward pass feeds the forward pass
    - Samples at index >= n_samples of the output stay 0.0

    C++ PORT NOTES:
    - The two reversal loops run over all L indices while each pass
      processes only n_samples; keep both counts explicit

    Parameters:
        filt: Filter instance (mutated)
        signal: Input sequence
        n_samples: Samples processed per pass

    Returns:
        Smoothed sequence
    """
    length = len(signal)
    if n_samples is None:
        n_samples = length

    reversed_in = np.zeros(length, dtype=np.float64)
    for i in range(length):
        reversed_in[i] = signal[length - 1 - i]

    backward_out = np.zeros(length, dtype=np.float64)
    filt.run(FilterJob(reversed_in, backward_out, n_samples))

    forward_in = np.zeros(length, dtype=np.float64)
    for i in range(length):
        forward_in[i] = backward_out[length - 1 - i]

    forward_out = np.zeros(length, dtype=np.float64)
    filt.run(FilterJob(forward_in, forward_out, n_samples))

    return forward_out
