from typing import Optional
import numpy as np

from .config import LabelingConfig
from .data_structures import ParticleSet

def angle_between(v1: np.ndarray, v2: np.ndarray, fold: bool = True) -> float:
    """Compute the angle between two vectors in degrees

    Args:
        v1: First vector
        v2: Second vector
        fold: Ignore vector signs, mapping the angle into [0, 90]

    Returns:
        float: Angle in degrees. Zero vectors give 90 when folded, 180 otherwise
    """
    n1 = np.linalg.norm(v1)
    n2 = np.linalg.norm(v2)
    if n1 == 0 or n2 == 0:
        return 90.0 if fold else 180.0

    cos_angle = np.dot(v1, v2) / (n1 * n2)
    if fold:
        # Eigenvector signs are arbitrary
        cos_angle = abs(cos_angle)
    cos_angle = np.clip(cos_angle, -1.0, 1.0)
    return float(np.degrees(np.arccos(cos_angle)))

class ConnectivityEvaluator:
    """Decides whether two particles are joined by a graph edge"""

    def __init__(self, particles: ParticleSet, config: LabelingConfig):
        """
        Args:
            particles: Particles whose features are compared
            config: Distance, angle and scale ratio thresholds
        """
        self.particles = particles
        self.distance_threshold = config.particle_distance_threshold
        self.angle_threshold = config.particle_angle_threshold
        self.scale_ratio_threshold = config.scale_ratio_threshold

    def evaluate(self, i: int, j: int) -> Optional[float]:
        """Test a particle pair

        Returns:
            The edge weight if the particles are connected, otherwise None.
            Smaller weights mean stronger connections.
        """
        if i == j:
            return None

        # Scale similarity
        scale1 = self.particles.scale(i)
        scale2 = self.particles.scale(j)
        max_scale = max(scale1, scale2)
        if max_scale <= 0:
            return None
        if abs(scale1 - scale2) / max_scale > self.scale_ratio_threshold:
            return None

        # Spatial proximity
        connecting_vec = self.particles.position(i) - self.particles.position(j)
        distance = float(np.linalg.norm(connecting_vec))
        if distance > self.distance_threshold:
            return None

        # Alignment of both minor eigenvectors with the connecting vector
        theta1 = angle_between(self.particles.hevec2_of(i), connecting_vec)
        theta2 = angle_between(self.particles.hevec2_of(j), connecting_vec)
        if theta1 > self.angle_threshold or theta2 > self.angle_threshold:
            return None

        return distance * (1.0 + 0.5 * (theta1 + theta2) / 90.0)

    def is_connected(self, i: int, j: int) -> bool:
        return self.evaluate(i, j) is not None
