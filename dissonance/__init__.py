"""
spectral-dissonance - Source Modules

This package contains the modules for per-block spectral dissonance estimation:
- complex_math: Complex value type and arithmetic
- roots: Laguerre polynomial root finder
- iirfilter: Direct-Form-II IIR filter engine
- kernel_params: Kernel parameter dataclasses
- kernel: Magnitude spectrum -> peaks -> Plomp-Levelt dissonance
- plugin: Host-facing block-push processor
- timebase: Frame grid and time axis
- audio_io: Audio loading and preprocessing
- host: Framing, windowing and FFT packing driver
- synthetic: Deterministic test signals
- export: JSON and plot generation
"""

__version__ = "2.0.0"
