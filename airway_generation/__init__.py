from .chest_conventions import ChestType, GENERATION_TYPES
from .config import LabelingConfig, EmissionStatistics
from .data_structures import (Particle, ParticleSet, Edge, ParticleGraph, ParticleTree,
                              OrientedForest, MissingParticleFieldError)
from .graph_builder import build_graph, build_forest
from .probability_model import ProbabilityModel
from .hmm import infer_labels, GenerationLabeler
