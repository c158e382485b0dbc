"""
Golden Reference Generator

Generates deterministic reference outputs from the dissonance kernel for
C++ validation.

Usage:
    # Generate golden outputs
    python golden_reference.py --output golden_outputs/

    # Validate existing golden outputs
    python golden_reference.py --validate --output golden_outputs/

Directory structure:
    golden_outputs/
    └── kernel_v{KERNEL_VERSION}/
        └── timebase_v{TIMEBASE_VERSION}/
            ├── filter/
            │   └── lowpass_impulse.json
            ├── scenarios/
            │   ├── silence.json
            │   ├── pure_tone.json
            │   ├── two_tones.json
            │   └── harmonic_stack.json
            └── synthetic/
                ├── demo_unison.json
                ├── demo_fifth.json
                ├── demo_minor_second.json
                └── demo_harmonic_stack.json
"""

import argparse
import hashlib
import json
import warnings
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List

import numpy as np

import config
from dissonance.export import NumpyEncoder
from dissonance.host import analyse_audio
from dissonance.iirfilter import IIRFilter, filter_signal
from dissonance.kernel import NoPeaksWarning
from dissonance.kernel_params import DissonanceConfig, DEFAULT_CONFIG
from dissonance.plugin import DissonancePlugin, LINEAR_OUTPUT, LOG_OUTPUT
from dissonance.synthetic import demo_tracks, reference_scenarios
from dissonance.timebase import TIMEBASE_VERSION


# Reference geometry (Fs = 44100, M = 1024)
REFERENCE_SAMPLE_RATE: int = 44100
REFERENCE_BLOCK_SIZE: int = 1024
REFERENCE_STEP_SIZE: int = 512
IMPULSE_LENGTH: int = 64
SYNTHETIC_DURATION_SEC: float = 0.5

RTOL: float = 1e-9
ATOL: float = 1e-12


def compute_sha256(data: np.ndarray) -> str:
    """Compute SHA256 checksum of numpy array."""
    return hashlib.sha256(np.ascontiguousarray(data).tobytes()).hexdigest()


def get_versioned_output_path(
    base_dir: str,
    kernel_version: str = None,
    timebase_version: str = None
) -> Path:
    """
    Build versioned output path.

    Parameters:
        base_dir: Base output directory
        kernel_version: Kernel version (default: config.KERNEL_VERSION)
        timebase_version: Timebase version (default: TIMEBASE_VERSION)

    Returns:
        Path like golden_outputs/kernel_v2.0.0/timebase_v1/
    """
    if kernel_version is None:
        kernel_version = config.KERNEL_VERSION
    if timebase_version is None:
        timebase_version = TIMEBASE_VERSION

    return Path(base_dir) / f"kernel_v{kernel_version}" / f"timebase_v{timebase_version}"


def _header(cfg: DissonanceConfig) -> Dict:
    return {
        'schema_version': config.SCHEMA_VERSION,
        'kernel_version': config.KERNEL_VERSION,
        'timebase_version': TIMEBASE_VERSION,
        'generated_at': datetime.now(timezone.utc).isoformat(),
        'params': cfg.to_dict()
    }


def _write(data: Dict, path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w') as f:
        json.dump(data, f, indent=2, cls=NumpyEncoder)
    return path


# =============================================================================
# REFERENCE COMPUTATION
# =============================================================================

def compute_lowpass_impulse(cfg: DissonanceConfig = DEFAULT_CONFIG, length: int = IMPULSE_LENGTH) -> np.ndarray:
    """First `length` samples of the smoothing filter's impulse response."""
    impulse = np.zeros(length, dtype=np.float64)
    impulse[0] = 1.0
    return filter_signal(IIRFilter(cfg.smoothing.filter_spec()), impulse)


def compute_scenario_outputs(cfg: DissonanceConfig = DEFAULT_CONFIG) -> Dict[str, Dict]:
    """
    Run every reference scenario through a fresh plugin.

    Returns:
        Dict name -> {'linear', 'log', 'peak_bins', 'partials'}
    """
    outputs = {}
    for scenario in reference_scenarios(REFERENCE_BLOCK_SIZE):
        plugin = DissonancePlugin(REFERENCE_SAMPLE_RATE, cfg)
        plugin.initialise(1, REFERENCE_STEP_SIZE, REFERENCE_BLOCK_SIZE)

        with warnings.catch_warnings():
            warnings.simplefilter('ignore', NoPeaksWarning)
            features = plugin.process([scenario['block']], 0.0)

        result = plugin.last_result
        outputs[scenario['name']] = {
            'description': scenario['description'],
            'block_sha256': compute_sha256(scenario['block']),
            'linear': list(features[LINEAR_OUTPUT][0].values),
            'log': list(features[LOG_OUTPUT][0].values),
            'peak_bins': list(result.peak_bins),
            'partials': result.partials.pairs()
        }
    return outputs


def compute_synthetic_outputs(cfg: DissonanceConfig = DEFAULT_CONFIG) -> Dict[str, Dict]:
    """
    Run the demo signals through the host driver.

    Returns:
        Dict name -> {'audio_checksum', 'times', 'linear', 'log'}
    """
    outputs = {}
    tracks = demo_tracks(REFERENCE_SAMPLE_RATE, SYNTHETIC_DURATION_SEC, config.DEMO_BASE_FREQ_HZ)
    for track in tracks:
        with warnings.catch_warnings():
            warnings.simplefilter('ignore', NoPeaksWarning)
            analysis = analyse_audio(
                track['audio'],
                REFERENCE_SAMPLE_RATE,
                block_size=REFERENCE_BLOCK_SIZE,
                step_size=REFERENCE_STEP_SIZE,
                config=cfg
            )
        outputs[track['name']] = {
            'description': track['description'],
            'audio_checksum': compute_sha256(track['audio']),
            'duration': len(track['audio']) / REFERENCE_SAMPLE_RATE,
            'times': analysis['times'],
            'linear': [None if np.isnan(v) else float(v) for v in analysis['linear']],
            'log': [None if np.isnan(v) else float(v) for v in analysis['log']]
        }
    return outputs


# =============================================================================
# GENERATION
# =============================================================================

def generate_references(output_dir: str, cfg: DissonanceConfig = DEFAULT_CONFIG) -> List[Path]:
    """
    Write all golden reference files.

    Parameters:
        output_dir: Base output directory
        cfg: Kernel configuration

    Returns:
        List of written files
    """
    versioned_path = get_versioned_output_path(output_dir)
    header = _header(cfg)
    files = []

    impulse = compute_lowpass_impulse(cfg)
    files.append(_write(
        dict(header, values=impulse, length=len(impulse)),
        versioned_path / 'filter' / 'lowpass_impulse.json'
    ))
    print(f"  filter/lowpass_impulse.json ({len(impulse)} samples)")

    for name, output in compute_scenario_outputs(cfg).items():
        files.append(_write(dict(header, **output), versioned_path / 'scenarios' / f"{name}.json"))
        print(f"  scenarios/{name}.json (linear: {output['linear']})")

    for name, output in compute_synthetic_outputs(cfg).items():
        files.append(_write(dict(header, **output), versioned_path / 'synthetic' / f"{name}.json"))
        print(f"  synthetic/{name}.json ({len(output['times'])} frames)")

    return files


# =============================================================================
# VALIDATION
# =============================================================================

def _values_match(ref: List, new: List) -> bool:
    """Compare value lists where None marks an empty output."""
    if len(ref) != len(new):
        return False
    ref_arr = np.array([np.nan if v is None else v for v in ref], dtype=np.float64)
    new_arr = np.array([np.nan if v is None else v for v in new], dtype=np.float64)
    return bool(np.allclose(ref_arr, new_arr, rtol=RTOL, atol=ATOL, equal_nan=True))


def validate_references(output_dir: str, cfg: DissonanceConfig = DEFAULT_CONFIG) -> bool:
    """
    Validate golden references against a fresh computation.

    Validates:
    1. Low-pass impulse response values
    2. Scenario outputs and peak bins
    3. Synthetic audio checksums and per-frame values

    Parameters:
        output_dir: Base output directory
        cfg: Kernel configuration

    Returns:
        True if all validations pass
    """
    versioned_path = get_versioned_output_path(output_dir)
    if not versioned_path.exists():
        print(f"No golden outputs found at {versioned_path}")
        return False

    all_passed = True

    impulse_path = versioned_path / 'filter' / 'lowpass_impulse.json'
    if impulse_path.exists():
        with open(impulse_path) as f:
            ref = json.load(f)
        if _values_match(ref['values'], list(compute_lowpass_impulse(cfg, ref['length']))):
            print("  PASS: lowpass impulse response")
        else:
            print("  FAIL: lowpass impulse response differs")
            all_passed = False
    else:
        print("SKIP: filter/lowpass_impulse.json not found")

    for name, output in compute_scenario_outputs(cfg).items():
        path = versioned_path / 'scenarios' / f"{name}.json"
        if not path.exists():
            print(f"SKIP: scenarios/{name}.json not found")
            continue
        with open(path) as f:
            ref = json.load(f)

        if ref['block_sha256'] != output['block_sha256']:
            print(f"  FAIL: {name} input block checksum differs")
            all_passed = False
        elif ref['peak_bins'] != output['peak_bins']:
            print(f"  FAIL: {name} peak bins differ ({ref['peak_bins']} vs {output['peak_bins']})")
            all_passed = False
        elif not (_values_match(ref['linear'], output['linear']) and
                  _values_match(ref['log'], output['log'])):
            print(f"  FAIL: {name} output values differ")
            all_passed = False
        else:
            print(f"  PASS: {name}")

    for name, output in compute_synthetic_outputs(cfg).items():
        path = versioned_path / 'synthetic' / f"{name}.json"
        if not path.exists():
            print(f"SKIP: synthetic/{name}.json not found")
            continue
        with open(path) as f:
            ref = json.load(f)

        if ref['audio_checksum'] != output['audio_checksum']:
            print(f"  FAIL: {name} audio checksum differs")
            all_passed = False
            continue

        # Frame start times must stay inside the signal
        if ref['times'] and max(ref['times']) >= ref['duration']:
            print(f"  FAIL: {name} frame time beyond duration")
            all_passed = False
            continue

        if _values_match(ref['linear'], output['linear']) and _values_match(ref['log'], output['log']):
            print(f"  PASS: {name} ({len(output['linear'])} frames)")
        else:
            print(f"  FAIL: {name} re-analysis values differ")
            all_passed = False

    return all_passed


# =============================================================================
# MAIN
# =============================================================================

def main():
    parser = argparse.ArgumentParser(
        description='Generate golden reference outputs for dissonance kernel validation'
    )
    parser.add_argument(
        '--output', '-o',
        default='golden_outputs',
        help='Base output directory for golden reference files'
    )
    parser.add_argument(
        '--validate', '-v',
        action='store_true',
        help='Validate existing golden references instead of generating'
    )

    args = parser.parse_args()

    if args.validate:
        print(f"Validating golden references in {args.output}/")
        success = validate_references(args.output)
        return 0 if success else 1

    print(f"Generating golden references to {args.output}/")
    files = generate_references(args.output)
    print(f"\nGenerated {len(files)} files.")
    return 0


if __name__ == '__main__':
    exit(main())
