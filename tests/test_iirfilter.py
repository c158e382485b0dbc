"""
IIR Filter Test Suite

Tests for the Direct-Form-II filter engine.
Verifies:
- Identity and impulse response properties
- Agreement with scipy.signal.lfilter for mixed orders
- State persistence, reset and free
- Backward-forward (zero-phase) smoothing
- Pole inspection through the root finder
"""

import pytest
import numpy as np
import sys
from pathlib import Path
from scipy import signal as scipy_signal

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from dissonance.complex_math import c_abs
from dissonance.iirfilter import (
    FilterJob,
    FilterSpec,
    FilterState,
    IIRFilter,
    InvalidFilterOrder,
    MAX_POLES,
    MAX_ZEROS,
    filter_backward_forward,
    filter_signal,
)
from dissonance.kernel_params import LOWPASS_A, LOWPASS_B


def lowpass_filter() -> IIRFilter:
    return IIRFilter(FilterSpec.from_ba(LOWPASS_B, LOWPASS_A))


def impulse(length: int) -> np.ndarray:
    x = np.zeros(length, dtype=np.float64)
    x[0] = 1.0
    return x


# =============================================================================
# SPEC AND STATE
# =============================================================================

class TestFilterSpec:
    """Coefficient packing and validation."""

    def test_from_ba_drops_leading_one(self):
        """a[0] = 1 is implied, a[1..Na] stored."""
        spec = FilterSpec.from_ba([0.5, 0.25], [1.0, -0.5])
        assert spec.b == (0.5, 0.25)
        assert spec.a == (-0.5,)
        assert spec.numb == 2
        assert spec.numa == 1
        assert spec.ndelay == 1
        assert spec.coeffs == (0.5, 0.25, -0.5)

    def test_from_ba_normalizes(self):
        """Coefficients are divided by a[0]."""
        spec = FilterSpec.from_ba([2.0, 4.0], [2.0, 1.0])
        assert spec.b == (1.0, 2.0)
        assert spec.a == (0.5,)

    def test_from_ba_rejects_zero_a0(self):
        with pytest.raises(ValueError):
            FilterSpec.from_ba([1.0], [0.0, 1.0])

    def test_lowpass_packing(self):
        """Built-in low-pass: 11 numerator taps, 10 poles, delay length 10."""
        spec = FilterSpec.from_ba(LOWPASS_B, LOWPASS_A)
        assert spec.numb == 11
        assert spec.numa == 10
        assert spec.ndelay == 10

    def test_delay_length_is_max_of_orders(self):
        """Nd = max(Nb - 1, Na)."""
        assert FilterSpec(b=(1.0, 2.0, 3.0, 4.0), a=(0.1,)).ndelay == 3
        assert FilterSpec(b=(1.0,), a=(0.1, 0.2, 0.3)).ndelay == 3
        assert FilterSpec(b=(1.0,)).ndelay == 0

    @pytest.mark.parametrize("b, a", [
        ((), ()),
        (tuple([0.1] * (MAX_ZEROS + 2)), ()),
        ((1.0,), tuple([0.01] * (MAX_POLES + 1))),
    ])
    def test_invalid_orders(self, b, a):
        """Orders outside 1 <= Nb <= 51, 0 <= Na <= 50 are refused."""
        with pytest.raises(InvalidFilterOrder, match="Filter order out of bounds"):
            IIRFilter(FilterSpec(b=b, a=a))

    def test_invalid_order_is_value_error(self):
        """Callers can catch the generic ValueError."""
        with pytest.raises(ValueError):
            IIRFilter(FilterSpec(b=()))

    def test_maximum_orders_accepted(self):
        """Nb = 51 and Na = 50 are the largest supported orders."""
        spec = FilterSpec(b=tuple([0.0] * MAX_ZEROS + [1.0]), a=tuple([0.0] * MAX_POLES))
        filt = IIRFilter(spec)
        assert filt.state.ndelay == 50


class TestFilterState:
    """Circular delay line."""

    def test_starts_zeroed(self):
        state = FilterState(4)
        assert np.all(state.delay == 0.0)
        assert state.position == 0

    def test_insert_and_read(self):
        """read(1) is the most recent sample, read(n) the oldest."""
        state = FilterState(3)
        for v in [1.0, 2.0, 3.0, 4.0]:
            state.insert(v)
        assert state.read(1) == 4.0
        assert state.read(2) == 3.0
        assert state.read(3) == 2.0
        assert 0 <= state.position < 3

    def test_reset(self):
        state = FilterState(3)
        state.insert(5.0)
        state.reset()
        assert np.all(state.delay == 0.0)
        assert state.position == 0

    def test_zero_length_insert_is_noop(self):
        state = FilterState(0)
        state.insert(1.0)
        assert state.position == 0


class TestFilterJob:
    """Job validation."""

    def test_count_larger_than_buffers(self):
        with pytest.raises(ValueError):
            FilterJob(np.zeros(4), np.zeros(8), 5)
        with pytest.raises(ValueError):
            FilterJob(np.zeros(8), np.zeros(4), 5)

    def test_negative_count(self):
        with pytest.raises(ValueError):
            FilterJob(np.zeros(4), np.zeros(4), -1)


# =============================================================================
# FILTERING
# =============================================================================

class TestFilterRun:
    """Difference equation behaviour."""

    def test_identity_filter(self):
        """Nb = 1, Na = 0, b = [1.0] copies the input."""
        filt = IIRFilter(FilterSpec(b=(1.0,)))
        x = np.random.default_rng(0).standard_normal(100)

        np.testing.assert_array_equal(filter_signal(filt, x), x)

    def test_fir_impulse_response_is_coefficients(self):
        """An FIR impulse response reproduces b."""
        b = (0.5, -0.25, 0.125, 2.0)
        filt = IIRFilter(FilterSpec(b=b))

        y = filter_signal(filt, impulse(8))

        np.testing.assert_allclose(y[:4], b)
        np.testing.assert_array_equal(y[4:], 0.0)

    def test_lowpass_impulse_matches_lfilter(self):
        """64-sample low-pass impulse response equals scipy's reference."""
        y = filter_signal(lowpass_filter(), impulse(64))
        expected = scipy_signal.lfilter(LOWPASS_B, LOWPASS_A, impulse(64))

        np.testing.assert_allclose(y, expected, rtol=1e-9, atol=1e-13)
        assert y[0] == pytest.approx(LOWPASS_B[0])

    @pytest.mark.parametrize("b, a", [
        ([0.2, 0.3, 0.2], [1.0, -0.4]),                       # Nb - 1 > Na
        ([0.5], [1.0, -0.6, 0.25, -0.05]),                    # Na > Nb - 1
        ([0.1, 0.2, 0.3, 0.2, 0.1], [1.0, -0.5, 0.3, -0.1, 0.02]),  # equal
    ])
    def test_matches_lfilter_mixed_orders(self, b, a):
        """Random input filtered like scipy.signal.lfilter."""
        x = np.random.default_rng(1).standard_normal(256)
        filt = IIRFilter(FilterSpec.from_ba(b, a))

        np.testing.assert_allclose(
            filter_signal(filt, x), scipy_signal.lfilter(b, a, x), rtol=1e-10, atol=1e-12
        )

    def test_state_persists_across_runs(self):
        """Two half-length runs equal one full-length run."""
        x = np.random.default_rng(2).standard_normal(200)

        whole = filter_signal(lowpass_filter(), x)

        filt = lowpass_filter()
        first = filter_signal(filt, x[:100])
        second = filter_signal(filt, x[100:])

        np.testing.assert_allclose(np.concatenate([first, second]), whole, rtol=1e-12, atol=1e-15)

    def test_run_respects_sample_count(self):
        """Only output[0:n] is written."""
        filt = lowpass_filter()
        x = np.ones(10)
        y = np.full(10, -7.0)

        filt.run(FilterJob(x, y, 4))

        assert np.all(y[4:] == -7.0)
        assert np.all(y[:4] != -7.0)

    def test_tick_matches_run(self):
        """Per-sample filtering equals block filtering."""
        x = np.random.default_rng(3).standard_normal(50)
        block = filter_signal(lowpass_filter(), x)

        filt = lowpass_filter()
        ticks = np.array([filt.tick(v) for v in x])

        np.testing.assert_allclose(ticks, block, rtol=1e-12, atol=1e-15)

    def test_reset_restores_impulse_response(self):
        """Post-reset impulse response equals the initial impulse response."""
        filt = lowpass_filter()
        first = filter_signal(filt, impulse(64))

        filter_signal(filt, np.random.default_rng(4).standard_normal(37))
        filt.reset()

        assert np.all(filt.state.delay == 0.0)
        assert filt.state.position == 0
        np.testing.assert_array_equal(filter_signal(filt, impulse(64)), first)

    def test_deterministic(self):
        """Same state + same input -> identical output."""
        x = np.random.default_rng(5).standard_normal(128)
        np.testing.assert_array_equal(
            filter_signal(lowpass_filter(), x),
            filter_signal(lowpass_filter(), x)
        )

    def test_freed_filter_raises(self):
        """A freed filter can no longer run or reset."""
        filt = lowpass_filter()
        filt.free()

        with pytest.raises(RuntimeError):
            filter_signal(filt, impulse(4))
        with pytest.raises(RuntimeError):
            filt.reset()


# =============================================================================
# BACKWARD-FORWARD SMOOTHING
# =============================================================================

class TestBackwardForward:
    """Zero-phase smoothing by reverse / filter / reverse / filter."""

    def test_symmetric_input_gives_symmetric_output(self):
        """A centred Gaussian bump stays symmetric after smoothing."""
        length = 2049
        center = length // 2
        n = np.arange(length)
        bump = np.exp(-0.5 * ((n - center) / 20.0) ** 2)

        y = filter_backward_forward(lowpass_filter(), bump)

        left = y[center - 600:center]
        right = y[center + 600:center:-1]
        np.testing.assert_allclose(left, right, atol=1e-8 * np.max(np.abs(y)))

    def test_no_phase_shift(self):
        """The smoothed peak stays at the input peak."""
        length = 1025
        center = 512
        n = np.arange(length)
        bump = np.exp(-0.5 * ((n - center) / 15.0) ** 2)

        y = filter_backward_forward(lowpass_filter(), bump)

        assert int(np.argmax(y)) == center

    def test_short_pass_leaves_tail_zero(self):
        """With n_samples < L, output beyond n_samples stays zero."""
        x = np.linspace(1.0, 2.0, 33)
        y = filter_backward_forward(lowpass_filter(), x, n_samples=32)

        assert len(y) == 33
        assert y[32] == 0.0

    def test_short_pass_matches_lfilter_with_carried_state(self):
        """Both passes share one filter state; the last input index is never filtered."""
        mags = np.random.default_rng(6).random(512)
        n = len(mags)
        extended = np.append(mags, 0.0)

        y = filter_backward_forward(lowpass_filter(), extended, n_samples=n)

        # Reference with scipy: pass 1 on reversed input, state carried into pass 2
        reversed_in = extended[::-1][:n]
        zi = np.zeros(max(len(LOWPASS_A), len(LOWPASS_B)) - 1)
        y1, zf = scipy_signal.lfilter(LOWPASS_B, LOWPASS_A, reversed_in, zi=zi)
        backward = np.append(y1, 0.0)
        forward_in = backward[::-1][:n]
        y2, _ = scipy_signal.lfilter(LOWPASS_B, LOWPASS_A, forward_in, zi=zf)

        np.testing.assert_allclose(y[:n], y2, rtol=1e-7, atol=1e-8)

    def test_state_not_reset_between_calls(self):
        """A second call on the same filter differs from a fresh filter."""
        x = np.random.default_rng(7).random(65)
        filt = lowpass_filter()
        first = filter_backward_forward(filt, x, n_samples=64)
        second = filter_backward_forward(filt, x, n_samples=64)

        assert not np.allclose(first, second)
        np.testing.assert_array_equal(
            first, filter_backward_forward(lowpass_filter(), x, n_samples=64)
        )


# =============================================================================
# POLES
# =============================================================================

class TestPoles:
    """Pole inspection via the Laguerre root finder."""

    def test_butterworth_poles_match_numpy(self):
        """Fourth-order Butterworth poles agree with numpy.roots."""
        b, a = scipy_signal.butter(4, 0.25)
        filt = IIRFilter(FilterSpec.from_ba(b, a))

        poles = filt.poles()
        expected = np.roots(a)

        assert len(poles) == 4
        np.testing.assert_allclose(
            [c_abs(p) for p in poles],
            sorted(np.abs(expected), reverse=True),
            atol=1e-7
        )
        assert filt.is_stable()

    def test_poles_sorted_by_descending_magnitude(self):
        filt = IIRFilter(FilterSpec.from_ba([1.0], [1.0, -2.5, 1.0]))
        poles = filt.poles()

        np.testing.assert_allclose([p.real for p in poles], [2.0, 0.5], atol=1e-10)
        assert not filt.is_stable()

    def test_lowpass_is_stable(self):
        """The built-in smoothing filter has all poles inside the unit circle."""
        filt = lowpass_filter()
        assert len(filt.poles()) == 10
        assert filt.is_stable()

    def test_fir_has_no_poles(self):
        filt = IIRFilter(FilterSpec(b=(0.5, 0.5)))
        assert filt.poles() == []
        assert filt.is_stable()
