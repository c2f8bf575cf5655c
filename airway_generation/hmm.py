import logging
from collections import Counter
from typing import Dict
import numpy as np
from tqdm import tqdm

from .chest_conventions import ChestType, GENERATION_TYPES, chest_type_name
from .connectivity import angle_between
from .data_structures import ParticleSet, ParticleTree, OrientedForest
from .probability_model import ProbabilityModel

logger = logging.getLogger(__name__)

def best_label(scores: np.ndarray) -> ChestType:
    """Highest scoring generation label, lowest code on ties

    Nodes without positive evidence for any generation are rejected as
    UNDEFINEDTYPE.
    """
    scores = np.nan_to_num(scores, nan=0.0)
    k = int(np.argmax(scores))
    if scores[k] <= 0:
        return ChestType.UNDEFINEDTYPE
    return GENERATION_TYPES[k]

class GenerationLabeler:
    """
    Assigns airway generation labels to the particles of an oriented forest.

    Each tree is labeled top-down. The root takes the label with the highest
    emission likelihood; every other node takes the label maximising
    emission times the transition likelihood from its parent's already
    fixed label. Decisions are never revisited.
    """

    def __init__(self, model: ProbabilityModel):
        self.model = model
        if not model.has_atlases:
            logger.warning("Probability model has no atlas particles; all particles will be undefined")
        if not model.has_transitions:
            logger.warning("No transition information loaded; labels follow emission likelihoods only")

    def label_tree(self, tree: ParticleTree, particles: ParticleSet, labels: np.ndarray) -> None:
        """Label one tree in place in the labels array"""
        for node in tree.order:
            emission = self.model.emission_likelihoods(particles.particle(node))
            parent = tree.parent.get(node)

            if parent is None or labels[parent] == ChestType.UNDEFINEDTYPE:
                labels[node] = best_label(emission)
                continue

            scale_diff = particles.scale(parent) - particles.scale(node)
            angle = angle_between(particles.hevec2_of(parent), particles.hevec2_of(node))
            transition = self.model.transition_row(ChestType(int(labels[parent])), scale_diff, angle)
            labels[node] = best_label(emission * transition)

    def label(self, forest: OrientedForest, particles: ParticleSet) -> ParticleSet:
        """Label every tree of the forest

        Returns:
            ParticleSet: Copy of the particles carrying the inferred labels
        """
        if forest.n_particles != len(particles):
            raise ValueError(f"Forest covers {forest.n_particles} particles but {len(particles)} were given")

        logger.info("Labeling airway generations...")
        labels = np.full(len(particles), int(ChestType.UNDEFINEDTYPE), dtype=np.int64)

        pbar = tqdm(forest.trees, desc="Labeling trees", unit="trees")
        for tree in pbar:
            self.label_tree(tree, particles, labels)

        self._log_summary(labels)
        return particles.with_chest_types(labels)

    def _log_summary(self, labels: np.ndarray) -> Dict[str, int]:
        stats = {chest_type_name(code): count for code, count in sorted(Counter(labels.tolist()).items())}
        logger.info("Labeling summary:")
        for name, count in stats.items():
            logger.info(f"- {name}: {count} particles")
        if stats.get(ChestType.UNDEFINEDTYPE.name, 0) == len(labels) and len(labels) > 0:
            logger.warning("No particle received a generation label!")
        return stats

def infer_labels(forest: OrientedForest, particles: ParticleSet, model: ProbabilityModel) -> ParticleSet:
    """Assign generation labels to the particles of a forest"""
    return GenerationLabeler(model).label(forest, particles)
