"""
Polynomial Root Finder Module

Laguerre iteration with deflation and polishing for polynomials with
complex coefficients. Used to inspect filter poles; the dissonance
pipeline itself never calls it.

DESIGN CONSTRAINTS:
- Coefficients are in ascending powers: p(z) = sum(a[k] * z^k), k = 0..m
- Non-convergence is a diagnostic (RootFinderWarning), never an exception
- Deterministic: same coefficients -> same roots

CONSTANTS:
- MT = 10 iterations between cycle-breaking steps
- MR = 8 fractional step sizes
- MAXIT = MT * MR = 80 iterations per root
- EPSS = 1e-7 convergence scale, EPS = 2e-6 real-axis collapse tolerance
"""

import math
import warnings
from typing import List, Sequence, Tuple, Union

from dissonance.complex_math import (
    Complex,
    c_abs,
    c_add,
    c_div,
    c_mul,
    c_sqrt,
    c_sub,
    rc_mul,
)


# =============================================================================
# CONSTANTS
# =============================================================================

EPSS: float = 1.0e-7
MR: int = 8
MT: int = 10
MAXIT: int = MT * MR
EPS: float = 2.0e-6

# Fractional steps used every MT iterations to break limit cycles
CYCLE_FRACTIONS: Tuple[float, ...] = (0.0, 0.5, 0.25, 0.75, 0.13, 0.38, 0.62, 0.88, 1.0)


class RootFinderWarning(RuntimeWarning):
    """Laguerre iteration hit its iteration limit before converging."""


Coefficient = Union[Complex, float, int]


def _as_complex(value: Coefficient) -> Complex:
    if isinstance(value, Complex):
        return value
    return Complex(float(value), 0.0)


# =============================================================================
# LAGUERRE ITERATION
# =============================================================================

def laguerre(
    coeffs: Sequence[Complex],
    degree: int,
    x: Complex,
    max_iterations: int = MAXIT
) -> Tuple[Complex, int]:
    """
    Improve a root estimate of a polynomial by Laguerre's method.

    CONTRACT:
    - Input: coeffs[0..degree] in ascending powers, initial guess x
    - Output: (root_estimate, iterations_used)
    - Converged when |p(x)| <= EPSS * (sum of |coeff| * |x|^k Horner bound)
    - Every MT-th iteration takes a fractional step to escape cycles
    - Emits RootFinderWarning and returns the last estimate if
      max_iterations is exceeded

    C++ PORT NOTES:
    - Horner evaluation of p, p' and p''/2 in a single pass
    - Complex helpers from complex_math map one-to-one onto C functions

    Parameters:
        coeffs: Polynomial coefficients (ascending powers)
        degree: Polynomial degree m (uses coeffs[0..m])
        x: Initial root estimate
        max_iterations: Iteration limit (default MAXIT)

    Returns:
        Tuple of (root estimate, number of iterations)
    """
    m = degree

    for iteration in range(1, max_iterations + 1):
        b = coeffs[m]
        err = c_abs(b)
        d = Complex(0.0, 0.0)
        f = Complex(0.0, 0.0)
        abx = c_abs(x)

        # Horner pass: b = p(x), d = p'(x), f = p''(x) / 2
        for j in range(m - 1, -1, -1):
            f = c_add(c_mul(x, f), d)
            d = c_add(c_mul(x, d), b)
            b = c_add(c_mul(x, b), coeffs[j])
            err = c_abs(b) + abx * err

        err *= EPSS
        if c_abs(b) <= err:
            return x, iteration

        g = c_div(d, b)
        g2 = c_mul(g, g)
        h = c_sub(g2, rc_mul(2.0, c_div(f, b)))
        sq = c_sqrt(rc_mul(float(m - 1), c_sub(rc_mul(float(m), h), g2)))
        gp = c_add(g, sq)
        gm = c_sub(g, sq)
        abp = c_abs(gp)
        abm = c_abs(gm)
        if abp < abm:
            gp = gm

        if max(abp, abm) > 0.0:
            dx = c_div(Complex(float(m), 0.0), gp)
        else:
            dx = rc_mul(
                math.exp(math.log(1.0 + abx)),
                Complex(math.cos(iteration), math.sin(iteration))
            )

        x1 = c_sub(x, dx)
        if x.real == x1.real and x.imag == x1.imag:
            return x, iteration

        if iteration % MT:
            x = x1
        else:
            fraction = CYCLE_FRACTIONS[min(iteration // MT, MR)]
            x = c_sub(x, rc_mul(fraction, dx))

    warnings.warn(
        f"too many iterations in laguerre ({max_iterations}), returning best estimate",
        RootFinderWarning
    )
    return x, max_iterations


# =============================================================================
# ROOT FINDING
# =============================================================================

def find_polynomial_roots(
    coeffs: Sequence[Coefficient],
    polish: bool = True
) -> List[Complex]:
    """
    Find all roots of a polynomial with complex coefficients.

    CONTRACT:
    - Input: coeffs[0..m] in ascending powers, m >= 1, coeffs[m] != 0
    - Output: list of m roots sorted by ascending real part
    - Each root is found from (0, 0) on the deflated polynomial, then
      polished against the original polynomial
    - Imaginary parts within 2 * EPS * |real| collapse to zero before deflation
    - Non-convergence only warns; partial estimates are still returned

    Parameters:
        coeffs: Polynomial coefficients (ascending powers), Complex or real
        polish: Re-run Laguerre on the undeflated polynomial (default True)

    Returns:
        List of m roots

    Raises:
        ValueError: If degree < 1 or the leading coefficient is zero
    """
    a = [_as_complex(c) for c in coeffs]
    m = len(a) - 1

    if m < 1:
        raise ValueError(f"Polynomial degree must be >= 1, got {m}")
    if a[m].real == 0.0 and a[m].imag == 0.0:
        raise ValueError("Leading polynomial coefficient must be non-zero")

    deflated = list(a)
    roots: List[Complex] = [Complex(0.0, 0.0)] * m

    for j in range(m, 0, -1):
        x, _ = laguerre(deflated, j, Complex(0.0, 0.0))
        if abs(x.imag) <= 2.0 * EPS * abs(x.real):
            x = Complex(x.real, 0.0)
        roots[j - 1] = x

        # Synthetic division by (z - x)
        b = deflated[j]
        for jj in range(j - 1, -1, -1):
            c = deflated[jj]
            deflated[jj] = b
            b = c_add(c_mul(x, b), c)

    if polish:
        for j in range(m):
            roots[j], _ = laguerre(a, m, roots[j])

    # Straight insertion sort by ascending real part
    for j in range(1, m):
        x = roots[j]
        i = j - 1
        while i >= 0 and roots[i].real > x.real:
            roots[i + 1] = roots[i]
            i -= 1
        roots[i + 1] = x

    return roots


def sort_by_magnitude(roots: Sequence[Complex]) -> List[Complex]:
    """Sort roots into descending order of magnitude (stable for ties)."""
    return sorted(roots, key=c_abs, reverse=True)
