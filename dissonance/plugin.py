"""
Plugin Module - Host-Facing Dissonance Processor

Wraps DissonanceEvaluator in a block-push interface: the host initialises
the processor once, then pushes one FFT block per step together with an
opaque timestamp and receives a feature set back.

DESIGN CONSTRAINTS:
- Never raises into the host; recoverable conditions become warnings
- No buffering or reordering of blocks
- The only cross-block state is the evaluator's smoothing filter

FEATURE SET LAYOUT:
- Output 0: linear dissonance D (unit "Diss")
- Output 1: log10(D), empty when D <= 0
- Both outputs are empty when D is not finite
- Both outputs carry [0.0] when no peaks were found
"""

import math
import warnings
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

import numpy as np

from dissonance.kernel import DissonanceEvaluator, DissonanceResult, NoPeaksWarning
from dissonance.kernel_params import DissonanceConfig, DEFAULT_CONFIG


# =============================================================================
# METADATA
# =============================================================================

PLUGIN_IDENTIFIER: str = "dissonance"
PLUGIN_NAME: str = "Dissonance"
PLUGIN_DESCRIPTION: str = "Calculate the dissonance function of the spectrum of the input signal"
PLUGIN_MAKER: str = "Bregman Media Labs"
PLUGIN_VERSION: int = 2
PLUGIN_COPYRIGHT: str = "Freely redistributable (BSD license)"

INPUT_DOMAIN: str = "FrequencyDomain"
MIN_CHANNELS: int = 1
MAX_CHANNELS: int = 1

LINEAR_OUTPUT: int = 0
LOG_OUTPUT: int = 1


class UninitializedWarning(UserWarning):
    """process() was called before a successful initialise()."""


class MalformedBlockWarning(UserWarning):
    """A pushed block did not match the initialised channel count or block size."""


# =============================================================================
# FEATURE TYPES
# =============================================================================

@dataclass
class Feature:
    """One output value list; no timestamp (one feature per step)."""
    values: List[float] = field(default_factory=list)
    has_timestamp: bool = False
    timestamp: Optional[float] = None


@dataclass(frozen=True)
class OutputDescriptor:
    identifier: str
    name: str
    description: str
    unit: str = ""
    has_fixed_bin_count: bool = True
    bin_count: int = 1
    has_known_extents: bool = False
    is_quantized: bool = False
    sample_type: str = "OneSamplePerStep"


FeatureSet = Dict[int, List[Feature]]


# =============================================================================
# PLUGIN
# =============================================================================

class DissonancePlugin:
    """
    Frequency-domain dissonance plugin.

    Usage:
        plugin = DissonancePlugin(44100.0)
        if plugin.initialise(1, 512, 1024):
            features = plugin.process([fft_block], timestamp)
    """

    def __init__(self, input_sample_rate: float, config: DissonanceConfig = DEFAULT_CONFIG) -> None:
        self.input_sample_rate = float(input_sample_rate)
        self.config = config
        self.channels = 0
        self.step_size = 0
        self.block_size = 0
        self.evaluator: Optional[DissonanceEvaluator] = None
        self.last_result: Optional[DissonanceResult] = None

    # -------------------------------------------------------------------------
    # Metadata
    # -------------------------------------------------------------------------

    def get_identifier(self) -> str:
        return PLUGIN_IDENTIFIER

    def get_name(self) -> str:
        return PLUGIN_NAME

    def get_description(self) -> str:
        return PLUGIN_DESCRIPTION

    def get_maker(self) -> str:
        return PLUGIN_MAKER

    def get_plugin_version(self) -> int:
        return PLUGIN_VERSION

    def get_copyright(self) -> str:
        return PLUGIN_COPYRIGHT

    def get_input_domain(self) -> str:
        return INPUT_DOMAIN

    def get_min_channel_count(self) -> int:
        return MIN_CHANNELS

    def get_max_channel_count(self) -> int:
        return MAX_CHANNELS

    def get_preferred_step_size(self) -> int:
        # 0 lets the host choose
        return 0

    def get_preferred_block_size(self) -> int:
        return 0

    def get_output_descriptors(self) -> List[OutputDescriptor]:
        linear = OutputDescriptor(
            identifier="lineardissonance",
            name="Dissonance",
            description="Dissonance function of the linear frequency spectrum",
            unit="Diss"
        )
        log = OutputDescriptor(
            identifier="logdissonance",
            name="Log Dissonance",
            description="Dissonance function of the log weighted frequency spectrum",
            unit="log10 Diss"
        )
        return [linear, log]

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    @property
    def is_initialised(self) -> bool:
        return self.evaluator is not None

    def initialise(self, channels: int, step_size: int, block_size: int) -> bool:
        """
        Record stream geometry and build the evaluator.

        Returns:
            False for unsupported channel counts or block sizes, True otherwise
        """
        if channels < MIN_CHANNELS or channels > MAX_CHANNELS:
            return False
        if block_size <= 0 or block_size % 2:
            return False

        self.channels = channels
        self.step_size = step_size
        self.block_size = block_size
        self.evaluator = DissonanceEvaluator(self.input_sample_rate, self.config)
        self.last_result = None
        return True

    def reset(self) -> None:
        """Zero the smoothing filter; geometry is kept."""
        if self.evaluator is not None:
            self.evaluator.reset()
        self.last_result = None

    # -------------------------------------------------------------------------
    # Processing
    # -------------------------------------------------------------------------

    def process(self, input_buffers: Sequence[np.ndarray], timestamp: float = 0.0) -> FeatureSet:
        """
        Evaluate one FFT block.

        Parameters:
            input_buffers: One interleaved (re, im) array per channel,
                each of length block_size + 2
            timestamp: Host timestamp in seconds (not used)

        Returns:
            Feature set keyed by output index; {} when uninitialised or malformed
        """
        if self.evaluator is None:
            warnings.warn("process() called before initialise()", UninitializedWarning)
            return {}

        if len(input_buffers) != self.channels:
            warnings.warn(
                f"expected {self.channels} channel(s), got {len(input_buffers)}",
                MalformedBlockWarning
            )
            return {}

        block = input_buffers[0]
        if len(block) < self.block_size + 2:
            warnings.warn(
                f"block too short: expected {self.block_size + 2} values, got {len(block)}",
                MalformedBlockWarning
            )
            return {}

        result = self.evaluator.evaluate(block, self.block_size)
        self.last_result = result
        return features_from_result(result)

    def get_remaining_features(self) -> FeatureSet:
        return {}


def features_from_result(result: DissonanceResult) -> FeatureSet:
    """Map an evaluation result onto the two plugin outputs."""
    if not result.has_peaks:
        return {LINEAR_OUTPUT: [Feature(values=[0.0])], LOG_OUTPUT: [Feature(values=[0.0])]}

    linear = Feature()
    log = Feature()
    if result.is_finite:
        linear.values.append(float(result.value))
        if result.value > 0.0:
            log.values.append(math.log10(result.value))

    return {LINEAR_OUTPUT: [linear], LOG_OUTPUT: [log]}


__all__ = [
    'DissonancePlugin',
    'Feature',
    'FeatureSet',
    'OutputDescriptor',
    'NoPeaksWarning',
    'UninitializedWarning',
    'MalformedBlockWarning',
    'features_from_result',
]
