"""
Audio I/O Module

Handles audio loading, mono conversion, normalization and validation.
All operations are deterministic and reproducible.
"""

import numpy as np
from pathlib import Path
from typing import Tuple, Dict, Optional
from scipy.io import wavfile

import config


def load_audio(file_path: str) -> Tuple[np.ndarray, int]:
    """
    Load a WAV file and return it as a mono float32 array.

    Parameters:
        file_path: Path to WAV file

    Returns:
        Tuple of (audio_array, sample_rate)
        audio_array: mono float32 array in range [-1.0, 1.0]
        sample_rate: sample rate in Hz

    Raises:
        FileNotFoundError: If file doesn't exist
        ValueError: If the sample format is unsupported
    """
    if not Path(file_path).exists():
        raise FileNotFoundError(f"Audio file not found: {file_path}")

    sr, audio = wavfile.read(file_path)

    # Convert to float32 and normalize based on dtype
    if audio.dtype == np.int16:
        audio = audio.astype(np.float32) / 32768.0
    elif audio.dtype == np.int32:
        audio = audio.astype(np.float32) / 2147483648.0
    elif audio.dtype == np.uint8:
        audio = (audio.astype(np.float32) - 128.0) / 128.0
    elif audio.dtype in (np.float32, np.float64):
        audio = audio.astype(np.float32)
    else:
        raise ValueError(f"Unsupported audio dtype: {audio.dtype}")

    if len(audio.shape) > 1:
        audio = convert_to_mono(audio, method=config.MONO_METHOD)

    return audio, int(sr)


def convert_to_mono(audio: np.ndarray, method: str = 'average') -> np.ndarray:
    """
    Convert stereo/multi-channel audio to mono.

    Parameters:
        audio: Audio array, 1D mono or 2D (samples, channels) as returned
            by scipy.io.wavfile
        method: Conversion method - 'average', 'left', 'right'

    Returns:
        Mono audio array (1D)

    Raises:
        ValueError: If method is invalid or audio shape is unexpected
    """
    if method not in ['average', 'left', 'right']:
        raise ValueError(f"Unknown mono conversion method: {method}")

    if len(audio.shape) == 1:
        return audio

    if len(audio.shape) != 2:
        raise ValueError(f"Unexpected audio shape: {audio.shape}")

    if method == 'average':
        return np.mean(audio, axis=1).astype(audio.dtype)
    elif method == 'left':
        return audio[:, 0]
    else:
        return audio[:, -1]


def normalize_audio(
    audio: np.ndarray,
    method: str = 'peak'
) -> Tuple[np.ndarray, float]:
    """
    Normalize audio amplitude.

    Parameters:
        audio: Audio array
        method: Normalization method
            - 'peak': Scale so max absolute value is 1.0
            - 'none': Leave the signal untouched

    Returns:
        Tuple of (normalized_audio, normalization_factor)

    Raises:
        ValueError: If method is invalid
    """
    if method == 'none':
        return audio, 1.0

    if method == 'peak':
        peak = np.abs(audio).max() if len(audio) else 0.0
        if peak == 0:
            # Silent audio
            return audio, 1.0
        factor = 1.0 / peak
        return (audio * factor).astype(np.float32), float(factor)

    raise ValueError(f"Unknown normalization method: {method}")


def validate_audio(
    audio: np.ndarray,
    sr: int,
    max_duration: Optional[float] = None,
    min_duration: Optional[float] = None
) -> None:
    """
    Validate audio array for processing.

    Parameters:
        audio: Audio array to validate
        sr: Sample rate (Hz)
        max_duration: Maximum allowed duration in seconds (None = use config)
        min_duration: Minimum allowed duration in seconds (None = use config)

    Raises:
        ValueError: If audio is invalid
    """
    if max_duration is None:
        max_duration = config.MAX_TRACK_DURATION_SEC
    if min_duration is None:
        min_duration = config.MIN_TRACK_DURATION_SEC

    if sr <= 0:
        raise ValueError(f"Sample rate must be positive, got {sr}")

    if len(audio) == 0:
        raise ValueError("Audio array is empty")

    if not np.isfinite(audio).all():
        raise ValueError("Audio contains NaN or infinite values")

    duration = len(audio) / sr
    if duration > max_duration:
        raise ValueError(
            f"Audio duration ({duration:.1f}s) exceeds maximum "
            f"({max_duration:.1f}s)"
        )

    if duration < min_duration:
        raise ValueError(f"Audio too short: {duration:.3f}s (minimum {min_duration:.3f}s)")


def preprocess_audio(
    file_path: str,
    normalize_method: Optional[str] = None
) -> Dict:
    """
    Load and preprocess an audio track.

    Pipeline: load → mono → validate → normalize

    Parameters:
        file_path: Path to WAV file
        normalize_method: Normalization method (None = use config default)

    Returns:
        Dictionary containing:
            - 'audio': preprocessed audio array (float32)
            - 'sample_rate': sample rate (Hz)
            - 'duration': duration in seconds
            - 'preprocessing': dict of preprocessing steps applied
    """
    if normalize_method is None:
        normalize_method = config.NORMALIZATION_METHOD

    audio, sr = load_audio(file_path)
    validate_audio(audio, sr)

    audio, norm_factor = normalize_audio(audio, method=normalize_method)

    return {
        'audio': audio,
        'sample_rate': sr,
        'duration': len(audio) / sr,
        'preprocessing': {
            'mono_method': config.MONO_METHOD,
            'normalization_method': normalize_method,
            'normalization_factor': float(norm_factor)
        }
    }
