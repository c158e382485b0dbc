"""
Export Module

Generate JSON outputs and plots for dissonance analysis results.
All outputs follow versioned schema for consistency.
"""

import math
import numpy as np
import json
from pathlib import Path
from typing import Dict, List, Optional
import matplotlib
matplotlib.use('Agg')  # Non-interactive backend
import matplotlib.pyplot as plt

import config
from dissonance import timebase


class NumpyEncoder(json.JSONEncoder):
    """JSON encoder that handles numpy types."""
    def default(self, obj):
        if isinstance(obj, np.integer):
            return int(obj)
        elif isinstance(obj, np.floating):
            return float(obj)
        elif isinstance(obj, np.ndarray):
            return obj.tolist()
        elif isinstance(obj, np.bool_):
            return bool(obj)
        return super().default(obj)


def _optional_values(values: np.ndarray) -> List[Optional[float]]:
    """Array -> list with None in place of NaN (JSON has no NaN)."""
    return [None if not math.isfinite(v) else float(v) for v in np.asarray(values, dtype=np.float64)]


def _output_values(feature_set: Dict, output: int) -> List[float]:
    features = feature_set.get(output, [])
    return [float(v) for v in features[0].values] if features else []


def create_features_json(
    analysis: Dict,
    audio_metadata: Dict,
    params: Dict
) -> Dict:
    """
    Create the per-frame features JSON.

    Parameters:
        analysis: Dict from host.analyse_audio
        audio_metadata: Dict from preprocess_audio (duration, sample_rate, preprocessing)
        params: Dict of all parameters used

    Returns:
        Features dict ready for JSON serialization
    """
    times = analysis['times']
    frames = []
    for i, feature_set in enumerate(analysis['features']):
        frame = {
            'time': float(times[i]),
            'lineardissonance': _output_values(feature_set, 0),
            'logdissonance': _output_values(feature_set, 1),
            'has_peaks': bool(analysis['has_peaks'][i])
        }
        if 'partials' in analysis:
            frame['peak_bins'] = analysis['peak_bins'][i]
            frame['partials'] = [
                {'frequency': f, 'magnitude': m} for f, m in analysis['partials'][i]
            ]
        frames.append(frame)

    return {
        'schema_version': config.SCHEMA_VERSION,
        'kernel_version': config.KERNEL_VERSION,
        'timebase_version': timebase.TIMEBASE_VERSION,

        'track_metadata': {
            'duration': audio_metadata['duration'],
            'sample_rate': audio_metadata['sample_rate'],
            'preprocessing': audio_metadata.get('preprocessing', {}),
            'n_frames': len(times),
            'block_size': analysis['block_size'],
            'step_size': analysis['step_size'],
            'window': analysis['window']
        },

        'params': params,

        'curves': {
            'lineardissonance': {
                'values': _optional_values(analysis['linear']),
                'unit': 'Diss',
                'sampling_interval_sec': analysis['step_size'] / analysis['sample_rate'],
                'description': 'Summed Plomp-Levelt roughness of the strongest spectral peaks'
            },
            'logdissonance': {
                'values': _optional_values(analysis['log']),
                'unit': 'log10 Diss',
                'sampling_interval_sec': analysis['step_size'] / analysis['sample_rate'],
                'description': 'Base-10 logarithm of the linear dissonance'
            }
        },

        'frames': frames
    }


def create_summary_json(analysis: Dict, duration: float) -> Dict:
    """
    Create summary JSON with key statistics.

    Parameters:
        analysis: Dict from host.analyse_audio
        duration: Track duration in seconds

    Returns:
        Summary dict with top-level stats
    """
    linear = np.asarray(analysis['linear'], dtype=np.float64)
    times = analysis['times']
    finite = np.isfinite(linear)

    if finite.any():
        finite_values = linear[finite]
        peak_idx = int(np.nanargmax(np.where(finite, linear, np.nan)))
        stats = {
            'mean': float(np.mean(finite_values)),
            'median': float(np.median(finite_values)),
            'std': float(np.std(finite_values)),
            'max': float(linear[peak_idx])
        }
        peak_time = min(float(times[peak_idx]), duration)
    else:
        stats = {'mean': 0.0, 'median': 0.0, 'std': 0.0, 'max': 0.0}
        peak_time = 0.0

    return {
        'schema_version': config.SCHEMA_VERSION,
        'duration_sec': duration,
        'num_frames': int(len(linear)),
        'num_frames_without_peaks': int(np.sum(~np.asarray(analysis['has_peaks']))),
        'num_non_finite_frames': int(np.sum(~finite)),
        'lineardissonance': stats,
        'peak_dissonance': {
            'time_sec': peak_time,
            'value': stats['max']
        }
    }


def save_json(data: Dict, output_path: Path) -> None:
    """
    Save data as JSON with pretty printing.

    Parameters:
        data: Dictionary to save
        output_path: Path to output file
    """
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, 'w') as f:
        json.dump(data, f, indent=2, cls=NumpyEncoder)


def plot_dissonance(
    analysis: Dict,
    output_path: Path,
    title: str = "Spectral Dissonance"
) -> None:
    """
    Plot linear and log dissonance against time.

    Empty frames (NaN) show as gaps in the curves.

    Parameters:
        analysis: Dict from host.analyse_audio
        output_path: Path to save plot
        title: Plot title
    """
    times = analysis['times']
    fig, axes = plt.subplots(2, 1, figsize=config.PLOT_FIGSIZE, sharex=True)

    ax1 = axes[0]
    ax1.plot(times, analysis['linear'], label='Linear dissonance', color='red', linewidth=1.5)

    # Mark frames without peaks
    no_peaks = ~np.asarray(analysis['has_peaks'])
    if no_peaks.any():
        ax1.scatter(times[no_peaks], np.zeros(int(no_peaks.sum())),
                    color='gray', s=6, label='No peaks')

    ax1.set_ylabel('Diss', fontsize=10)
    ax1.set_title(title, fontsize=12, fontweight='bold')
    ax1.legend(loc='upper right', fontsize=8)
    ax1.grid(True, alpha=0.3)

    ax2 = axes[1]
    ax2.plot(times, analysis['log'], label='log10 dissonance', color='blue', linewidth=1.5)
    ax2.set_xlabel('Time (seconds)', fontsize=10)
    ax2.set_ylabel('log10 Diss', fontsize=10)
    ax2.legend(loc='upper right', fontsize=8)
    ax2.grid(True, alpha=0.3)

    plt.tight_layout()

    output_path.parent.mkdir(parents=True, exist_ok=True)
    plt.savefig(output_path, dpi=config.PLOT_DPI, bbox_inches='tight')
    plt.close(fig)


def export_all_outputs(
    analysis: Dict,
    audio_metadata: Dict,
    params: Dict,
    output_dir: Path,
    track_name: str,
    generate_plots: bool = True
) -> List[Path]:
    """
    Export all outputs: JSON files and plots.

    Parameters:
        analysis: Dict from host.analyse_audio
        audio_metadata: Dict with 'duration', 'sample_rate', 'preprocessing'
        params: Parameters used
        output_dir: Output directory path
        track_name: Name of track (for filenames)
        generate_plots: Whether to generate plot files

    Returns:
        List of paths to created files
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    created_files = []

    features_json = create_features_json(analysis, audio_metadata, params)
    features_path = output_dir / f"{track_name}_features.json"
    save_json(features_json, features_path)
    created_files.append(features_path)

    summary_json = create_summary_json(analysis, audio_metadata['duration'])
    summary_path = output_dir / f"{track_name}_summary.json"
    save_json(summary_json, summary_path)
    created_files.append(summary_path)

    if generate_plots:
        plot_path = output_dir / f"{track_name}_dissonance.png"
        plot_dissonance(analysis, plot_path, title=f"Spectral Dissonance: {track_name}")
        created_files.append(plot_path)

    return created_files


def print_analysis_summary(summary_json: Dict, track_name: str) -> None:
    """
    Print concise analysis summary to console.

    Parameters:
        summary_json: Summary JSON dict
        track_name: Track name
    """
    stats = summary_json['lineardissonance']
    print(f"\n{'='*60}")
    print(f"Dissonance Summary: {track_name}")
    print(f"{'='*60}")
    print(f"Duration: {summary_json['duration_sec']:.2f} seconds")
    print(f"Frames: {summary_json['num_frames']} "
          f"({summary_json['num_frames_without_peaks']} without peaks, "
          f"{summary_json['num_non_finite_frames']} non-finite)")
    print(f"Mean dissonance: {stats['mean']:.6g} (median {stats['median']:.6g}, std {stats['std']:.6g})")
    print(f"Peak dissonance: {summary_json['peak_dissonance']['value']:.6g} "
          f"at {summary_json['peak_dissonance']['time_sec']:.2f}s")
    print(f"{'='*60}\n")
