#!/usr/bin/env python3
"""Generate deterministic synthetic audio fixtures.

Writes the demo dyads from dissonance/synthetic.py as WAV files so that
external implementations can be checked against the same input bytes.

Format: WAV IEEE float32, mono, 44100 Hz, 2.0s exactly
"""

import hashlib
import json
import sys
from pathlib import Path
from typing import Dict

from scipy.io import wavfile

sys.path.insert(0, str(Path(__file__).parent.parent))

from dissonance.synthetic import demo_tracks  # noqa: E402

SAMPLE_RATE = 44100
DURATION_SEC = 2.0
BASE_FREQ_HZ = 440.0
OUTPUT_DIR = Path(__file__).parent / "synthetic_audio"


def write_wav(filepath: Path, audio, sample_rate: int = SAMPLE_RATE) -> str:
    """Write WAV (IEEE float32) and return SHA256 of file bytes."""
    wavfile.write(filepath, sample_rate, audio)
    with open(filepath, 'rb') as f:
        return hashlib.sha256(f.read()).hexdigest()


def write_fixtures(
    output_dir: Path = OUTPUT_DIR,
    sample_rate: int = SAMPLE_RATE,
    duration_sec: float = DURATION_SEC
) -> Dict:
    """Write every demo track plus fixtures_manifest.json; return the manifest."""
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    manifest_entries = []

    for track in demo_tracks(sample_rate, duration_sec, BASE_FREQ_HZ):
        filename = f"{track['name']}.wav"
        sha256 = write_wav(output_dir / filename, track['audio'], sample_rate)

        print(f"{filename}: {sha256}")

        manifest_entries.append({
            "name": track['name'],
            "filename": filename,
            "description": track['description'],
            "duration_sec": duration_sec,
            "sample_rate_hz": sample_rate,
            "channels": 1,
            "sha256_bytes": sha256,
        })

    manifest = {
        "version": "1.0",
        "fixtures": manifest_entries,
    }

    manifest_path = output_dir / "fixtures_manifest.json"
    with open(manifest_path, 'w') as f:
        json.dump(manifest, f, indent=2)

    print(f"\nManifest written to: {manifest_path}")
    return manifest


def main():
    write_fixtures()


if __name__ == "__main__":
    main()
