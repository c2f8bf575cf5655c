import math
from dataclasses import dataclass

#------------------------------------------------------------------------------
# Graph Construction Parameters
#------------------------------------------------------------------------------

# Maximum distance between two connected particles (in mm)
PARTICLE_DISTANCE_THRESHOLD = 2.0
# Effect: Larger values bridge gaps between sparse particles but can join
# neighbouring branches. Smaller values fragment the tree into more components.

# Maximum angle between a particle's minor eigenvector and the connecting vector (degrees)
PARTICLE_ANGLE_THRESHOLD = 70.0
# Effect: Smaller values only connect particles lying along the airway axis
# Larger values tolerate noisy orientations but admit side-by-side particles

# Maximum relative scale difference |s1 - s2| / max(s1, s2)
SCALE_RATIO_THRESHOLD = 1.0
# Effect: 1.0 disables the test for positive scales. Lower values keep
# airways of very different calibre from being connected

#------------------------------------------------------------------------------
# Probability Model Parameters
#------------------------------------------------------------------------------

# Spherical ROI radius for the kernel density estimate (in mm)
KDE_ROI_RADIUS = math.inf
# Effect: Only atlas particles within this distance contribute to emission
# likelihoods. inf lets every atlas particle contribute (slow for big atlases)

# Transition statistics rows need more samples than this to be used
MIN_TRANSITION_SAMPLES = 10

# Kernel bandwidths used for labels without a loaded emission statistics row
DEFAULT_SCALE_DIFF_STD = 1.0
DEFAULT_DISTANCE_STD = 5.0
DEFAULT_ANGLE_STD = 20.0

@dataclass(frozen=True)
class EmissionStatistics:
    """Kernel statistics of one chest type used for emission likelihoods"""
    scale_diff_mean: float = 0.0
    scale_diff_std: float = DEFAULT_SCALE_DIFF_STD
    distance_mean: float = 0.0
    distance_std: float = DEFAULT_DISTANCE_STD
    angle_mean: float = 0.0
    angle_std: float = DEFAULT_ANGLE_STD
    sample_count: int = 0

DEFAULT_EMISSION_STATISTICS = EmissionStatistics()

@dataclass(frozen=True)
class LabelingConfig:
    """Parameters of a generation labeling run

    Args:
        particle_distance_threshold: Maximum distance between connected particles
        particle_angle_threshold: Maximum eigenvector/connecting vector angle in degrees
        scale_ratio_threshold: Maximum relative scale difference of connected particles
        kde_roi_radius: ROI radius for the kernel density estimate
        min_transition_samples: Transition stats rows need more samples than this
    """
    particle_distance_threshold: float = PARTICLE_DISTANCE_THRESHOLD
    particle_angle_threshold: float = PARTICLE_ANGLE_THRESHOLD
    scale_ratio_threshold: float = SCALE_RATIO_THRESHOLD
    kde_roi_radius: float = KDE_ROI_RADIUS
    min_transition_samples: int = MIN_TRANSITION_SAMPLES

    def __post_init__(self):
        if self.particle_distance_threshold < 0:
            raise ValueError("particle_distance_threshold must be non-negative")
        if not 0 <= self.particle_angle_threshold <= 180:
            raise ValueError("particle_angle_threshold must be within [0, 180] degrees")
        if self.scale_ratio_threshold < 0:
            raise ValueError("scale_ratio_threshold must be non-negative")
        if not self.kde_roi_radius > 0:
            raise ValueError("kde_roi_radius must be positive")
        if self.min_transition_samples < 0:
            raise ValueError("min_transition_samples must be non-negative")
