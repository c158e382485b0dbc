#!/usr/bin/env python3
"""
spectral-dissonance - Command Line Interface

Main entry point for running dissonance analysis on audio tracks.
Uses dissonance/host.py to push FFT blocks through the plugin
(same path as golden_reference.py).
"""

import argparse
import json
import sys
from pathlib import Path
from typing import Dict

import numpy as np

import config
from dissonance import audio_io, export, host
from dissonance.kernel_params import DEFAULT_CONFIG
from dissonance.synthetic import demo_tracks


def build_params(
    block_size: int = config.BLOCK_SIZE,
    step_size: int = config.STEP_SIZE,
    generate_plots: bool = True,
    keep_partials: bool = False
) -> dict:
    """Parameters dict recorded in the features JSON."""
    return {
        'block_size': block_size,
        'step_size': step_size,
        'window': config.WINDOW,
        'normalize_method': config.NORMALIZATION_METHOD,
        'generate_plots': generate_plots,
        'keep_partials': keep_partials,
        'kernel': DEFAULT_CONFIG.to_dict()
    }


def print_frame_partials(analysis: Dict, frame_idx: int, max_partials: int) -> None:
    """Print the peak bins and strongest partials of one frame."""
    partials = analysis['partials'][frame_idx]
    peak_bins = analysis['peak_bins'][frame_idx]
    print(f"   Frame {frame_idx} at {analysis['times'][frame_idx]:.3f}s: "
          f"{len(peak_bins)} peaks, {len(partials)} partials")
    strongest = sorted(partials, key=lambda p: p[1], reverse=True)[:max_partials]
    for freq, mag in strongest:
        print(f"     {freq:10.2f} Hz  mag {mag:.6g}")


def process_audio_array(
    audio: np.ndarray,
    sr: int,
    params: dict,
    verbose: bool = False
) -> dict:
    """
    Run the host driver over an audio array.

    Used by both process_single_track and run_demo_mode.

    Parameters:
        audio: Mono audio array
        sr: Sample rate
        params: Parameters dict
        verbose: Print verbose messages

    Returns:
        Analysis dict from host.analyse_audio
    """
    keep_partials = params.get('keep_partials', False) or verbose

    analysis = host.analyse_audio(
        audio,
        sr,
        block_size=params.get('block_size', config.BLOCK_SIZE),
        step_size=params.get('step_size', config.STEP_SIZE),
        config=DEFAULT_CONFIG,
        window=params.get('window', config.WINDOW),
        keep_partials=keep_partials
    )

    if verbose:
        n_frames = len(analysis['times'])
        n_empty = int(np.sum(~analysis['has_peaks']))
        print(f"   Analysed {n_frames} frames ({n_empty} without peaks)")

        finite = np.isfinite(analysis['linear'])
        if finite.any():
            loudest = int(np.nanargmax(np.where(finite, analysis['linear'], np.nan)))
            print_frame_partials(analysis, loudest, config.VERBOSE_MAX_PARTIALS)

    return analysis


def export_and_summarize(
    analysis: dict,
    audio_metadata: dict,
    params: dict,
    output_dir: Path,
    track_name: str,
    verbose: bool = False
) -> None:
    """Write outputs for one track and print its summary."""
    created_files = export.export_all_outputs(
        analysis,
        audio_metadata,
        params,
        output_dir,
        track_name,
        generate_plots=params.get('generate_plots', True)
    )

    if verbose:
        print(f"   Created {len(created_files)} output files")

    summary_path = output_dir / f"{track_name}_summary.json"
    with open(summary_path) as f:
        summary = json.load(f)
    export.print_analysis_summary(summary, track_name)


def process_single_track(
    file_path: Path,
    output_dir: Path,
    params: dict,
    verbose: bool = False
) -> bool:
    """
    Process a single audio track through the full pipeline.

    Parameters:
        file_path: Path to WAV file
        output_dir: Output directory for results
        params: Parameters dict
        verbose: Print verbose progress messages

    Returns:
        True if successful, False otherwise
    """
    track_name = file_path.stem

    try:
        if verbose:
            print(f"\nProcessing: {file_path.name}")
            print("-" * 60)
            print("1. Loading and preprocessing audio...")

        audio_data = audio_io.preprocess_audio(
            str(file_path),
            normalize_method=params.get('normalize_method', config.NORMALIZATION_METHOD)
        )

        if verbose:
            print(f"   Duration: {audio_data['duration']:.2f}s, "
                  f"Sample rate: {audio_data['sample_rate']} Hz")
            print("2. Computing dissonance per block...")

        analysis = process_audio_array(
            audio_data['audio'], audio_data['sample_rate'], params, verbose
        )

        if verbose:
            print("3. Exporting results...")

        export_and_summarize(analysis, audio_data, params, output_dir, track_name, verbose)
        return True

    except Exception as e:
        print(f"ERROR processing {file_path.name}: {e}", file=sys.stderr)
        if verbose:
            import traceback
            traceback.print_exc()
        return False


def process_directory(
    input_dir: Path,
    output_dir: Path,
    params: dict,
    verbose: bool = False
) -> dict:
    """
    Process all WAV files in a directory.

    Parameters:
        input_dir: Input directory containing audio files
        output_dir: Output directory for results
        params: Parameters dict
        verbose: Print verbose messages

    Returns:
        Dict with success/failure counts
    """
    audio_files = set()
    for ext in config.SUPPORTED_EXTENSIONS:
        audio_files.update(input_dir.glob(f'*{ext}'))
        audio_files.update(input_dir.glob(f'*{ext.upper()}'))

    if not audio_files:
        print(f"No audio files found in {input_dir}")
        return {'success': 0, 'failed': 0}

    print(f"Found {len(audio_files)} audio files")

    success_count = 0
    failed_count = 0

    for audio_file in sorted(audio_files):
        track_output_dir = output_dir / audio_file.stem

        if process_single_track(audio_file, track_output_dir, params, verbose):
            success_count += 1
        else:
            failed_count += 1

    print(f"\nProcessing complete: {success_count} successful, {failed_count} failed")

    return {'success': success_count, 'failed': failed_count}


def run_demo_mode(output_dir: Path, params: dict, verbose: bool = False) -> bool:
    """
    Run demo mode using synthetic dyads.

    Parameters:
        output_dir: Output directory for demo results
        params: Parameters dict
        verbose: Print verbose messages

    Returns:
        True if successful
    """
    print("Running demo mode with synthetic audio...")

    sr = config.DEMO_SAMPLE_RATE
    tracks = demo_tracks(sr, config.DEMO_DURATION_SEC, config.DEMO_BASE_FREQ_HZ)

    print(f"Generated {len(tracks)} synthetic test tracks")

    for track_info in tracks:
        print(f"\nProcessing: {track_info['name']} ({track_info['description']})")
        print("-" * 60)

        try:
            audio = track_info['audio']
            audio_metadata = {
                'sample_rate': sr,
                'duration': len(audio) / sr,
                'preprocessing': {
                    'mono_method': None,
                    'normalization_method': 'none',
                    'normalization_factor': 1.0
                }
            }

            analysis = process_audio_array(audio, sr, params, verbose)

            track_output_dir = output_dir / track_info['name']
            export_and_summarize(
                analysis, audio_metadata, params, track_output_dir, track_info['name'], verbose
            )

        except Exception as e:
            print(f"ERROR: {e}", file=sys.stderr)
            if verbose:
                import traceback
                traceback.print_exc()
            return False

    print(f"\nDemo complete! Results saved to {output_dir}")
    return True


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description='spectral-dissonance - Per-block Plomp-Levelt dissonance analysis',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Analyze single file
  %(prog)s track.wav --output results/

  # Analyze directory
  %(prog)s tracks/ --output results/

  # Run demo mode
  %(prog)s --demo --output demo_results/

  # Larger FFT, per-frame partials in the JSON
  %(prog)s track.wav --output results/ --block-size 4096 --step-size 2048 --partials
        """
    )

    parser.add_argument(
        'input',
        nargs='?',
        type=str,
        help='Input WAV file or directory (not needed for --demo)'
    )

    parser.add_argument(
        '--output', '-o',
        type=str,
        required=True,
        help='Output directory for results'
    )

    parser.add_argument(
        '--demo',
        action='store_true',
        help='Run demo mode with synthetic dyads (no input file needed)'
    )

    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Print verbose progress messages and partials of the roughest frame'
    )

    parser.add_argument(
        '--no-plots',
        action='store_true',
        help='Skip plot generation'
    )

    parser.add_argument(
        '--partials',
        action='store_true',
        help='Include per-frame peak bins and partials in the features JSON'
    )

    parser.add_argument(
        '--block-size',
        type=int,
        help=f'FFT block size in samples (default: {config.BLOCK_SIZE})'
    )

    parser.add_argument(
        '--step-size',
        type=int,
        help=f'Step size in samples (default: {config.STEP_SIZE})'
    )

    args = parser.parse_args()

    if not args.demo and not args.input:
        parser.error("Either provide an input file/directory or use --demo")

    block_size = args.block_size or config.BLOCK_SIZE
    step_size = args.step_size or config.STEP_SIZE
    if block_size <= 0 or block_size % 2:
        parser.error(f"--block-size must be even and positive, got {block_size}")
    if step_size <= 0:
        parser.error(f"--step-size must be positive, got {step_size}")

    params = build_params(
        block_size=block_size,
        step_size=step_size,
        generate_plots=not args.no_plots,
        keep_partials=args.partials
    )

    output_dir = Path(args.output)

    if args.demo:
        success = run_demo_mode(output_dir, params, args.verbose)
        sys.exit(0 if success else 1)

    else:
        input_path = Path(args.input)

        if not input_path.exists():
            print(f"ERROR: Input path does not exist: {input_path}", file=sys.stderr)
            sys.exit(1)

        if input_path.is_file():
            success = process_single_track(input_path, output_dir, params, args.verbose)
            sys.exit(0 if success else 1)

        elif input_path.is_dir():
            results = process_directory(input_path, output_dir, params, args.verbose)
            sys.exit(0 if results['failed'] == 0 else 1)

        else:
            print(f"ERROR: Invalid input path: {input_path}", file=sys.stderr)
            sys.exit(1)


if __name__ == '__main__':
    main()
