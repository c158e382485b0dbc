"""
Synthetic Audio Test Suite

End-to-end tests using generated audio with known ground truth.
No external audio files required.
"""

import json
import math
import sys
import warnings
from pathlib import Path

import pytest
import numpy as np
from scipy.io import wavfile

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

import cli
import config
import golden_reference
from dissonance import audio_io, export, host, synthetic
from dissonance.kernel import NoPeaksWarning
from dissonance.plugin import LINEAR_OUTPUT, LOG_OUTPUT
from fixtures import generate_fixtures


# =============================================================================
# HELPERS
# =============================================================================

def plomp_levelt(f1: float, f2: float, a1: float, a2: float) -> float:
    """Reference two-partial roughness with the default curve constants."""
    s = 0.24 / (0.0207 * f1 + 19.96)
    df = f2 - f1
    return a1 * a2 * (5.0 * math.exp(-3.51 * s * df) - 5.0 * math.exp(-5.75 * s * df))


def short_analysis(audio: np.ndarray, sr: int = 44100, **kwargs) -> dict:
    with warnings.catch_warnings():
        warnings.simplefilter('ignore', NoPeaksWarning)
        return host.analyse_audio(audio, sr, **kwargs)


@pytest.fixture
def dyad_wav(tmp_path):
    """Short float32 minor-second WAV file."""
    path = tmp_path / 'dyad.wav'
    audio = synthetic.generate_dyad(440.0, synthetic.MINOR_SECOND, duration=0.1, sr=44100)
    wavfile.write(path, 44100, audio)
    return path


# =============================================================================
# UNIT TESTS - SIGNAL GENERATORS
# =============================================================================

def test_tone_mix_shape_and_dtype():
    audio = synthetic.generate_tone_mix([440.0, 660.0], [0.5, 0.25], duration=0.5, sr=8000)
    assert audio.dtype == np.float32
    assert len(audio) == 4000
    assert np.max(np.abs(audio)) <= 0.75 + 1e-6


def test_tone_mix_length_mismatch():
    with pytest.raises(ValueError):
        synthetic.generate_tone_mix([440.0, 660.0], [0.5])


def test_harmonic_stack_peak_normalized():
    audio = synthetic.generate_harmonic_stack(220.0, 4, duration=0.2, sr=22050)
    assert np.max(np.abs(audio)) == pytest.approx(1.0, abs=1e-6)


def test_demo_tracks():
    tracks = synthetic.demo_tracks(sr=8000, duration=0.25)
    assert [t['name'] for t in tracks] == [
        'demo_unison', 'demo_fifth', 'demo_minor_second', 'demo_harmonic_stack'
    ]
    for track in tracks:
        assert len(track['audio']) == 2000
        assert track['description']


def test_make_fft_block_layout():
    block = synthetic.make_fft_block({1: 2.0 - 3.0j, 4: 1.0}, block_size=8)
    assert block.dtype == np.float32
    assert len(block) == 10
    np.testing.assert_array_equal(block, [0, 0, 2, -3, 0, 0, 0, 0, 1, 0])


def test_make_fft_block_out_of_range():
    with pytest.raises(ValueError):
        synthetic.make_fft_block({5: 1.0}, block_size=8)


def test_bin_centered_tones():
    audio = synthetic.generate_bin_centered_tones([41, 44], [0.5, 0.5], 4096, 4096, 44100)
    assert audio.dtype == np.float64
    assert len(audio) == 4096

    spectrum = np.abs(np.fft.rfft(audio))
    assert set(np.argsort(spectrum)[-2:]) == {41, 44}
    assert spectrum[41] == pytest.approx(0.5 * 4096 / 2, rel=1e-9)

    with pytest.raises(ValueError):
        synthetic.generate_bin_centered_tones([41], [0.5, 0.5])


def test_reference_scenarios():
    names = [s['name'] for s in synthetic.reference_scenarios(1024)]
    assert names == ['silence', 'pure_tone', 'two_tones', 'harmonic_stack']


# =============================================================================
# UNIT TESTS - AUDIO I/O
# =============================================================================

def test_audio_normalization():
    """Test audio normalization."""
    audio = np.array([0.5, -0.5, 0.25, -0.25], dtype=np.float32)

    normalized, factor = audio_io.normalize_audio(audio, method='peak')
    assert np.max(np.abs(normalized)) == pytest.approx(1.0, abs=1e-5)
    assert factor == pytest.approx(2.0, abs=1e-5)

    # Silent audio is left alone
    silent = np.zeros(100, dtype=np.float32)
    normalized, factor = audio_io.normalize_audio(silent, method='peak')
    assert np.all(normalized == 0.0)
    assert factor == 1.0

    untouched, factor = audio_io.normalize_audio(audio, method='none')
    assert untouched is audio
    assert factor == 1.0

    with pytest.raises(ValueError):
        audio_io.normalize_audio(audio, method='rms')


def test_mono_conversion():
    """Test stereo to mono conversion."""
    stereo = np.array([[1.0, 2.0], [3.0, 4.0]], dtype=np.float32)

    mono = audio_io.convert_to_mono(stereo, method='average')
    assert mono.shape == (2,)
    assert mono[0] == pytest.approx(1.5)
    assert mono[1] == pytest.approx(3.5)

    np.testing.assert_array_equal(audio_io.convert_to_mono(stereo, 'left'), [1.0, 3.0])
    np.testing.assert_array_equal(audio_io.convert_to_mono(stereo, 'right'), [2.0, 4.0])

    with pytest.raises(ValueError):
        audio_io.convert_to_mono(stereo, 'mid')


def test_load_int16_stereo(tmp_path):
    path = tmp_path / 'stereo.wav'
    data = np.zeros((800, 2), dtype=np.int16)
    data[:, 0] = 16384
    data[:, 1] = 8192
    wavfile.write(path, 8000, data)

    audio, sr = audio_io.load_audio(str(path))

    assert sr == 8000
    assert audio.ndim == 1
    assert audio.dtype == np.float32
    np.testing.assert_allclose(audio, 0.375)


def test_load_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        audio_io.load_audio(str(tmp_path / 'missing.wav'))


def test_validate_audio():
    audio = np.zeros(8000, dtype=np.float32)
    audio_io.validate_audio(audio, 8000)

    with pytest.raises(ValueError):
        audio_io.validate_audio(np.array([], dtype=np.float32), 8000)
    with pytest.raises(ValueError):
        audio_io.validate_audio(audio, 0)
    with pytest.raises(ValueError):
        audio_io.validate_audio(np.array([0.0, np.nan] * 100), 8000)
    with pytest.raises(ValueError):
        audio_io.validate_audio(audio, 8000, max_duration=0.5)
    with pytest.raises(ValueError):
        audio_io.validate_audio(audio[:10], 8000)


def test_preprocess_audio(dyad_wav):
    audio_data = audio_io.preprocess_audio(str(dyad_wav))

    assert audio_data['sample_rate'] == 44100
    assert audio_data['duration'] == pytest.approx(0.1, abs=1e-4)
    assert np.max(np.abs(audio_data['audio'])) == pytest.approx(1.0, abs=1e-6)
    assert audio_data['preprocessing']['normalization_method'] == config.NORMALIZATION_METHOD
    assert audio_data['preprocessing']['normalization_factor'] > 1.0


# =============================================================================
# END-TO-END - HOST DRIVER
# =============================================================================

class TestHostEndToEnd:
    """Bin-centred tones through window, FFT, packing and the plugin."""

    SR = 44100
    M = 4096
    AMPLITUDE = 0.5

    def analyse_pair(self, bin_a, bin_b, **kwargs):
        audio = synthetic.generate_bin_centered_tones(
            [bin_a, bin_b], [self.AMPLITUDE, self.AMPLITUDE], self.M, 4 * self.M, self.SR
        )
        return host.analyse_audio(audio, self.SR, block_size=self.M, step_size=self.M, **kwargs)

    def expected(self, bin_a, bin_b):
        # Periodic Hann halves a bin-centred sine: |X| / (M/2) = A / 2
        a = self.AMPLITUDE / 2
        return plomp_levelt(bin_a * self.SR / self.M, bin_b * self.SR / self.M, a, a)

    def test_minor_second_value(self):
        analysis = self.analyse_pair(41, 44)

        assert len(analysis['times']) == 4
        assert analysis['has_peaks'].all()
        np.testing.assert_allclose(analysis['linear'], self.expected(41, 44), rtol=1e-4)
        np.testing.assert_allclose(analysis['log'], np.log10(analysis['linear']))

    def test_fifth_value(self):
        analysis = self.analyse_pair(41, 62)
        np.testing.assert_allclose(analysis['linear'], self.expected(41, 62), rtol=1e-4)

    def test_minor_second_rougher_than_fifth(self):
        minor = self.analyse_pair(41, 44)['linear']
        fifth = self.analyse_pair(41, 62)['linear']
        assert np.all(minor > 10 * fifth)

    def test_keep_partials(self):
        analysis = self.analyse_pair(41, 44, keep_partials=True)

        assert analysis['peak_bins'][0] == [41, 44]
        freqs = [f for f, _ in analysis['partials'][0]]
        np.testing.assert_allclose(freqs, [41 * self.SR / self.M, 44 * self.SR / self.M])

    def test_packed_block_layout(self):
        frame = np.zeros(self.M)
        frame[0] = 1.0
        block = host.pack_fft_block(frame, np.ones(self.M))

        assert block.dtype == np.float32
        assert len(block) == self.M + 2
        np.testing.assert_array_equal(block[0::2], 1.0)
        np.testing.assert_array_equal(block[1::2], 0.0)

    def test_silence(self):
        with pytest.warns(NoPeaksWarning):
            analysis = host.analyse_audio(np.zeros(2048), self.SR)

        assert not analysis['has_peaks'].any()
        np.testing.assert_array_equal(analysis['linear'], 0.0)
        np.testing.assert_array_equal(analysis['log'], 0.0)

    def test_rejects_odd_block(self):
        with pytest.raises(ValueError):
            host.analyse_audio(np.zeros(2048), self.SR, block_size=1023)

    def test_determinism(self):
        audio = synthetic.generate_harmonic_stack(220.0, 4, duration=0.1, sr=self.SR)
        first = short_analysis(audio, self.SR)
        second = short_analysis(audio.copy(), self.SR)
        np.testing.assert_array_equal(first['linear'], second['linear'])


def test_feature_value_empty_output():
    assert math.isnan(host.feature_value({}, LINEAR_OUTPUT))
    assert math.isnan(host.feature_value({LOG_OUTPUT: []}, LOG_OUTPUT))


# =============================================================================
# EXPORT
# =============================================================================

def test_features_json_schema():
    """Test that JSON output has correct schema."""
    audio = synthetic.generate_dyad(440.0, synthetic.MINOR_SECOND, duration=0.1, sr=44100)
    analysis = short_analysis(audio, keep_partials=True)
    audio_metadata = {'duration': len(audio) / 44100, 'sample_rate': 44100, 'preprocessing': {}}
    params = cli.build_params()

    features_json = export.create_features_json(analysis, audio_metadata, params)

    assert features_json['schema_version'] == config.SCHEMA_VERSION
    assert features_json['kernel_version'] == config.KERNEL_VERSION
    assert features_json['params']['kernel']['max_partials'] == 20
    assert features_json['track_metadata']['n_frames'] == len(analysis['times'])

    for curve_name in ['lineardissonance', 'logdissonance']:
        curve = features_json['curves'][curve_name]
        assert len(curve['values']) == len(analysis['times'])
        assert curve['sampling_interval_sec'] == pytest.approx(512 / 44100)

    frame = features_json['frames'][0]
    assert set(frame) >= {'time', 'lineardissonance', 'logdissonance', 'has_peaks',
                          'peak_bins', 'partials'}

    # JSON has no NaN: empty outputs become None
    json.dumps(features_json, cls=export.NumpyEncoder, allow_nan=False)


def test_summary_json():
    analysis = {
        'times': np.array([0.0, 0.5, 1.0, 1.5]),
        'linear': np.array([0.1, np.nan, 0.4, 0.0]),
        'has_peaks': np.array([True, True, True, False]),
    }
    summary = export.create_summary_json(analysis, duration=2.0)

    assert summary['num_frames'] == 4
    assert summary['num_frames_without_peaks'] == 1
    assert summary['num_non_finite_frames'] == 1
    assert summary['lineardissonance']['max'] == pytest.approx(0.4)
    assert summary['lineardissonance']['mean'] == pytest.approx(0.5 / 3)
    assert summary['peak_dissonance']['time_sec'] == 1.0


def test_summary_json_all_empty():
    analysis = {
        'times': np.array([0.0, 0.5]),
        'linear': np.array([np.nan, np.nan]),
        'has_peaks': np.array([True, True]),
    }
    summary = export.create_summary_json(analysis, duration=1.0)
    assert summary['lineardissonance']['max'] == 0.0
    assert summary['num_non_finite_frames'] == 2


def test_export_all_outputs(tmp_path):
    audio = synthetic.generate_dyad(440.0, synthetic.PERFECT_FIFTH, duration=0.1, sr=44100)
    analysis = short_analysis(audio)
    audio_metadata = {'duration': len(audio) / 44100, 'sample_rate': 44100}

    created = export.export_all_outputs(
        analysis, audio_metadata, cli.build_params(), tmp_path, 'fifth'
    )

    assert [p.name for p in created] == [
        'fifth_features.json', 'fifth_summary.json', 'fifth_dissonance.png'
    ]
    for path in created:
        assert path.exists()

    with open(tmp_path / 'fifth_summary.json') as f:
        summary = json.load(f)
    assert summary['num_frames'] == len(analysis['times'])


# =============================================================================
# CLI
# =============================================================================

def test_process_single_track(dyad_wav, tmp_path):
    output_dir = tmp_path / 'out'
    params = cli.build_params(generate_plots=False, keep_partials=True)

    assert cli.process_single_track(dyad_wav, output_dir, params)
    assert (output_dir / 'dyad_features.json').exists()
    assert (output_dir / 'dyad_summary.json').exists()
    assert not (output_dir / 'dyad_dissonance.png').exists()


def test_process_single_track_missing_file(tmp_path):
    params = cli.build_params(generate_plots=False)
    assert not cli.process_single_track(tmp_path / 'missing.wav', tmp_path / 'out', params)


def test_process_directory(dyad_wav, tmp_path):
    output_dir = tmp_path / 'results'
    results = cli.process_directory(dyad_wav.parent, output_dir, cli.build_params(generate_plots=False))

    assert results == {'success': 1, 'failed': 0}
    assert (output_dir / 'dyad' / 'dyad_features.json').exists()


def test_cli_requires_input(monkeypatch, tmp_path):
    monkeypatch.setattr(sys, 'argv', ['dissonance', '--output', str(tmp_path)])
    with pytest.raises(SystemExit) as exc:
        cli.main()
    assert exc.value.code == 2


def test_cli_rejects_odd_block_size(monkeypatch, dyad_wav, tmp_path):
    monkeypatch.setattr(sys, 'argv', [
        'dissonance', str(dyad_wav), '--output', str(tmp_path), '--block-size', '1023'
    ])
    with pytest.raises(SystemExit) as exc:
        cli.main()
    assert exc.value.code == 2


def test_cli_single_file(monkeypatch, dyad_wav, tmp_path):
    output_dir = tmp_path / 'cli_out'
    monkeypatch.setattr(sys, 'argv', [
        'dissonance', str(dyad_wav), '--output', str(output_dir), '--no-plots'
    ])
    with pytest.raises(SystemExit) as exc:
        cli.main()
    assert exc.value.code == 0
    assert (output_dir / 'dyad_features.json').exists()


# =============================================================================
# GOLDEN REFERENCES AND FIXTURES
# =============================================================================

def test_golden_generate_then_validate(tmp_path):
    files = golden_reference.generate_references(str(tmp_path))

    assert len(files) == 9
    assert golden_reference.validate_references(str(tmp_path))

    with open(golden_reference.get_versioned_output_path(str(tmp_path)) / 'scenarios' / 'silence.json') as f:
        silence = json.load(f)
    assert silence['linear'] == [0.0]
    assert silence['log'] == [0.0]


def test_golden_detects_tampering(tmp_path):
    golden_reference.generate_references(str(tmp_path))
    path = golden_reference.get_versioned_output_path(str(tmp_path)) / 'scenarios' / 'two_tones.json'
    with open(path) as f:
        data = json.load(f)
    data['linear'] = [data['linear'][0] * 1.01]
    with open(path, 'w') as f:
        json.dump(data, f)

    assert not golden_reference.validate_references(str(tmp_path))


def test_golden_missing_directory(tmp_path):
    assert not golden_reference.validate_references(str(tmp_path / 'nothing'))


def test_fixtures_are_deterministic(tmp_path):
    first = generate_fixtures.write_fixtures(tmp_path / 'a', duration_sec=0.1)
    second = generate_fixtures.write_fixtures(tmp_path / 'b', duration_sec=0.1)

    assert len(first['fixtures']) == 4
    assert [e['sha256_bytes'] for e in first['fixtures']] == \
        [e['sha256_bytes'] for e in second['fixtures']]
    assert (tmp_path / 'a' / 'fixtures_manifest.json').exists()

    sr, audio = wavfile.read(tmp_path / 'a' / 'demo_fifth.wav')
    assert sr == 44100
    assert audio.dtype == np.float32
    assert len(audio) == 4410
