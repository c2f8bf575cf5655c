import logging
import math
from types import MappingProxyType
from typing import Dict, Tuple, Optional, Sequence, Mapping
import numpy as np
from scipy.spatial import cKDTree
from scipy.stats import norm

from .chest_conventions import ChestType, GENERATION_TYPES, NUM_GENERATIONS, is_generation, generation_index
from .config import EmissionStatistics, DEFAULT_EMISSION_STATISTICS
from .data_structures import Particle, ParticleSet

logger = logging.getLogger(__name__)

TypePair = Tuple[ChestType, ChestType]

def gaussian_density(x, mean, std):
    """Normal density, with zero standard deviations collapsed to a narrow peak"""
    std = np.maximum(np.asarray(std, dtype=float), 1e-12)
    return norm.pdf(x, loc=mean, scale=std)

class ProbabilityModel:
    """
    Emission and transition probabilities for generation labeling.

    Emission likelihoods are kernel density estimates over generation
    labeled atlas particles; the kernel of each label is a product of
    normal densities of the scale difference, distance and eigenvector
    angle using that label's emission statistics. Transition likelihoods
    come from normal statistics of the scale difference and angle at a
    branch when available for a label pair, else from the direct
    transition probability table.

    The model is read-only once constructed.
    """

    def __init__(self,
                 emission_stats: Optional[Mapping[ChestType, EmissionStatistics]] = None,
                 transition_probabilities: Optional[Mapping[TypePair, float]] = None,
                 transition_stats: Optional[Mapping[TypePair, Tuple[float, float, float, float]]] = None,
                 atlases: Sequence[ParticleSet] = (),
                 kde_roi_radius: float = math.inf):
        """
        Initialize the probability model

        Args:
            emission_stats: Kernel statistics per chest type
            transition_probabilities: Direct probabilities per (from, to) pair
            transition_stats: (scale diff mean, scale diff variance, angle mean,
                angle variance) per (from, to) pair
            atlases: Generation labeled atlas particle sets
            kde_roi_radius: Only atlas particles this close contribute to emissions
        """
        self.kde_roi_radius = kde_roi_radius
        self.emission_stats = MappingProxyType({ChestType(k): v for k, v in (emission_stats or {}).items()})
        self.transition_probabilities = MappingProxyType(
            {(ChestType(a), ChestType(b)): float(p) for (a, b), p in (transition_probabilities or {}).items()})
        self.transition_stats = MappingProxyType(
            {(ChestType(a), ChestType(b)): tuple(float(v) for v in s)
             for (a, b), s in (transition_stats or {}).items()})

        # Per-generation kernel parameters, indexed by generation
        stats = [self.emission_stats.get(t, DEFAULT_EMISSION_STATISTICS) for t in GENERATION_TYPES]
        self._kernel = {
            'scale_mean': np.array([s.scale_diff_mean for s in stats]),
            'scale_std': np.array([s.scale_diff_std for s in stats]),
            'distance_mean': np.array([s.distance_mean for s in stats]),
            'distance_std': np.array([s.distance_std for s in stats]),
            'angle_mean': np.array([s.angle_mean for s in stats]),
            'angle_std': np.array([s.angle_std for s in stats]),
        }

        self._build_transition_tables()
        self._build_atlas_index(atlases)

    def _build_transition_tables(self) -> None:
        # Rows indexed by generation: direct probabilities, which pairs carry
        # statistics, and their (scale mean, scale std, angle mean, angle std)
        n = NUM_GENERATIONS
        self._direct_rows = np.zeros((n, n))
        self._stats_mask = np.zeros((n, n), dtype=bool)
        self._stats_rows = np.zeros((4, n, n))
        for (from_type, to_type), p in self.transition_probabilities.items():
            if is_generation(from_type) and is_generation(to_type):
                self._direct_rows[generation_index(from_type), generation_index(to_type)] = p
        for (from_type, to_type), (scale_mean, scale_var, angle_mean, angle_var) in self.transition_stats.items():
            if is_generation(from_type) and is_generation(to_type):
                i, j = generation_index(from_type), generation_index(to_type)
                self._stats_mask[i, j] = True
                self._stats_rows[:, i, j] = (scale_mean, np.sqrt(scale_var), angle_mean, np.sqrt(angle_var))

    def _build_atlas_index(self, atlases: Sequence[ParticleSet]) -> None:
        positions, scales, hevec2, generations = [], [], [], []
        for k, atlas in enumerate(atlases):
            labeled = np.array([is_generation(c) for c in atlas.chest_types], dtype=bool)
            if not labeled.all():
                logger.warning(f"Atlas {k}: ignoring {np.sum(~labeled)} particles without a generation label")
            positions.append(atlas.positions[labeled])
            scales.append(atlas.scales[labeled])
            hevec2.append(atlas.hevec2[labeled])
            generations.append(atlas.chest_types[labeled] - int(ChestType.AIRWAYGENERATION0))

        if positions:
            self._atlas_positions = np.concatenate(positions)
            self._atlas_scales = np.concatenate(scales)
            self._atlas_hevec2 = np.concatenate(hevec2)
            self._atlas_generations = np.concatenate(generations).astype(np.int64)
        else:
            self._atlas_positions = np.empty((0, 3))
            self._atlas_scales = np.empty(0)
            self._atlas_hevec2 = np.empty((0, 3))
            self._atlas_generations = np.empty(0, dtype=np.int64)

        self._atlas_counts = np.bincount(self._atlas_generations, minlength=NUM_GENERATIONS)
        self._atlas_tree = cKDTree(self._atlas_positions) if len(self._atlas_positions) else None
        logger.info(f"Probability model uses {len(atlases)} atlases with "
                    f"{len(self._atlas_positions)} labeled particles")

    @property
    def has_atlases(self) -> bool:
        return self._atlas_tree is not None

    @property
    def has_transitions(self) -> bool:
        return bool(self.transition_probabilities) or bool(self.transition_stats)

    def atlas_count(self, label: ChestType) -> int:
        """Number of atlas particles carrying a generation label"""
        if not is_generation(label):
            return 0
        return int(self._atlas_counts[generation_index(label)])

    def _atlas_neighbours(self, position: np.ndarray) -> np.ndarray:
        if math.isinf(self.kde_roi_radius):
            return np.arange(len(self._atlas_positions))
        return np.asarray(self._atlas_tree.query_ball_point(position, self.kde_roi_radius), dtype=np.int64)

    def emission_likelihoods(self, particle: Particle) -> np.ndarray:
        """Emission likelihood of every generation label for one particle

        Returns:
            np.ndarray: One value per entry of GENERATION_TYPES
        """
        likelihoods = np.zeros(NUM_GENERATIONS)
        if not self.has_atlases:
            return likelihoods

        idx = self._atlas_neighbours(particle.position)
        if len(idx) == 0:
            return likelihoods

        generations = self._atlas_generations[idx]
        distances = np.linalg.norm(self._atlas_positions[idx] - particle.position, axis=1)
        scale_diffs = particle.scale - self._atlas_scales[idx]

        # Folded angles between the eigenvectors
        atlas_vecs = self._atlas_hevec2[idx]
        norms = np.linalg.norm(atlas_vecs, axis=1) * np.linalg.norm(particle.hevec2)
        with np.errstate(invalid='ignore', divide='ignore'):
            cos_angles = np.abs(atlas_vecs @ particle.hevec2) / norms
        cos_angles = np.where(norms > 0, np.clip(cos_angles, 0.0, 1.0), 0.0)
        angles = np.degrees(np.arccos(cos_angles))

        k = self._kernel
        weights = (gaussian_density(scale_diffs, k['scale_mean'][generations], k['scale_std'][generations]) *
                   gaussian_density(distances, k['distance_mean'][generations], k['distance_std'][generations]) *
                   gaussian_density(angles, k['angle_mean'][generations], k['angle_std'][generations]))

        sums = np.bincount(generations, weights=weights, minlength=NUM_GENERATIONS)
        represented = self._atlas_counts > 0
        likelihoods[represented] = sums[represented] / self._atlas_counts[represented]
        return likelihoods

    def emission_likelihood(self, particle: Particle, label: ChestType) -> float:
        """Emission likelihood of one label for a particle"""
        if not is_generation(label):
            return 0.0
        return float(self.emission_likelihoods(particle)[generation_index(label)])

    def transition_likelihood(self, from_type: ChestType, to_type: ChestType,
                              scale_diff: float = 0.0, angle: float = 0.0) -> float:
        """Likelihood of moving from one label to another across a tree edge

        Normal statistics for the pair take precedence over the direct
        probability. Pairs with neither score 0, unless the model holds no
        transition information at all, in which case every transition is 1.
        """
        if not self.has_transitions:
            return 1.0

        key = (ChestType(from_type), ChestType(to_type))
        stats = self.transition_stats.get(key)
        if stats is not None:
            scale_mean, scale_var, angle_mean, angle_var = stats
            return float(gaussian_density(scale_diff, scale_mean, np.sqrt(scale_var)) *
                         gaussian_density(angle, angle_mean, np.sqrt(angle_var)))

        return self.transition_probabilities.get(key, 0.0)

    def transition_row(self, from_type: ChestType, scale_diff: float, angle: float) -> np.ndarray:
        """Transition likelihoods from one label to every generation label"""
        if not self.has_transitions:
            return np.ones(NUM_GENERATIONS)
        if not is_generation(from_type):
            return np.zeros(NUM_GENERATIONS)

        i = generation_index(from_type)
        scale_mean, scale_std, angle_mean, angle_std = self._stats_rows[:, i]
        gaussian = (gaussian_density(scale_diff, scale_mean, scale_std) *
                    gaussian_density(angle, angle_mean, angle_std))
        return np.where(self._stats_mask[i], gaussian, self._direct_rows[i])

    def row_sums(self) -> Dict[ChestType, float]:
        """Sum of the direct transition probabilities leaving each label"""
        sums = {t: 0.0 for t in GENERATION_TYPES}
        for (from_type, _), p in self.transition_probabilities.items():
            if from_type in sums:
                sums[from_type] += p
        return sums
