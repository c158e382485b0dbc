"""
Complex Arithmetic Module - Value-Type Complex Scalars

Minimal complex number support for the polynomial root finder.

DESIGN CONSTRAINTS:
- Value type with explicit real/imag fields (no reliance on the builtin complex)
- All operations by value, no in-place mutation
- Overflow-guarded division and modulus (Smith's scaling)

Only dissonance/roots.py uses these routines; the dissonance pipeline does not.
"""

import math
from dataclasses import dataclass


@dataclass(frozen=True)
class Complex:
    """
    Complex scalar as a (real, imag) pair.

    For C++ port: struct Complex { double r; double i; };
    """
    real: float = 0.0
    imag: float = 0.0


def complex_from(real: float, imag: float) -> Complex:
    """Construct a complex value from two reals."""
    return Complex(float(real), float(imag))


def c_add(a: Complex, b: Complex) -> Complex:
    return Complex(a.real + b.real, a.imag + b.imag)


def c_sub(a: Complex, b: Complex) -> Complex:
    return Complex(a.real - b.real, a.imag - b.imag)


def c_mul(a: Complex, b: Complex) -> Complex:
    return Complex(
        a.real * b.real - a.imag * b.imag,
        a.imag * b.real + a.real * b.imag
    )


def rc_mul(x: float, a: Complex) -> Complex:
    """Multiply a complex value by a real scalar."""
    return Complex(x * a.real, x * a.imag)


def c_div(a: Complex, b: Complex) -> Complex:
    """
    Divide a by b.

    CONTRACT:
    - Dispatches on |b.real| >= |b.imag| so the intermediate ratio is <= 1
      in magnitude (Smith's algorithm)
    - Division by (0, 0) raises ZeroDivisionError
    """
    if abs(b.real) >= abs(b.imag):
        r = b.imag / b.real
        den = b.real + r * b.imag
        return Complex((a.real + r * a.imag) / den, (a.imag - r * a.real) / den)

    r = b.real / b.imag
    den = b.imag + r * b.real
    return Complex((a.real * r + a.imag) / den, (a.imag * r - a.real) / den)


def c_abs(z: Complex) -> float:
    """
    Modulus of z with the same rescaling as c_div.

    |z| = max * sqrt(1 + (min/max)^2), which never squares the larger part.
    """
    x = abs(z.real)
    y = abs(z.imag)
    if x == 0.0:
        return y
    if y == 0.0:
        return x
    if x > y:
        temp = y / x
        return x * math.sqrt(1.0 + temp * temp)
    temp = x / y
    return y * math.sqrt(1.0 + temp * temp)


def c_sqrt(z: Complex) -> Complex:
    """
    Principal square root of z.

    CONTRACT:
    - Returns (0, 0) for (0, 0)
    - Result has non-negative real part
    - For negative real z the sign of the imaginary result follows z.imag
    """
    if z.real == 0.0 and z.imag == 0.0:
        return Complex(0.0, 0.0)

    x = abs(z.real)
    y = abs(z.imag)
    if x >= y:
        r = y / x
        w = math.sqrt(x) * math.sqrt(0.5 * (1.0 + math.sqrt(1.0 + r * r)))
    else:
        r = x / y
        w = math.sqrt(y) * math.sqrt(0.5 * (r + math.sqrt(1.0 + r * r)))

    if z.real >= 0.0:
        return Complex(w, z.imag / (2.0 * w))

    imag = w if z.imag >= 0.0 else -w
    return Complex(z.imag / (2.0 * imag), imag)
