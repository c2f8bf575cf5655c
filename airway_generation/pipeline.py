import os
import logging
from typing import List, Optional, Sequence, Tuple, Dict

from .chest_conventions import ChestType
from .config import LabelingConfig, EmissionStatistics
from .data_structures import ParticleSet, OrientedForest
from .graph_builder import build_graph, build_forest
from .hmm import infer_labels
from .probability_model import ProbabilityModel
from .parameter_io import read_emission_statistics, read_transition_probabilities, read_transition_statistics
from .particle_io import read_particles, attach_chest_types, write_particles
from .evaluation import log_evaluation

logger = logging.getLogger(__name__)

def load_probability_model(config: LabelingConfig,
                           atlases: Sequence[ParticleSet] = (),
                           emission_stats_file: Optional[str] = None,
                           transition_probabilities_file: Optional[str] = None,
                           transition_stats_file: Optional[str] = None) -> ProbabilityModel:
    """Populate the probability model from parameter files and atlases

    Args:
        config: Run configuration (ROI radius, sample count threshold)
        atlases: Generation labeled atlas particle sets
        emission_stats_file: Optional emission statistics csv
        transition_probabilities_file: Optional 11x11 transition probability csv
        transition_stats_file: Optional transition statistics csv
    """
    emission_stats: Dict[ChestType, EmissionStatistics] = {}
    if emission_stats_file:
        logger.info("Setting emission probability statistics...")
        for record in read_emission_statistics(emission_stats_file).records:
            emission_stats[record.chest_type] = EmissionStatistics(
                scale_diff_mean=record.scale_diff_mean,
                scale_diff_std=record.scale_diff_std,
                distance_mean=record.distance_mean,
                distance_std=record.distance_std,
                angle_mean=record.angle_mean,
                angle_std=record.angle_std,
                sample_count=int(record.sample_count))

    transition_probabilities = {}
    if transition_probabilities_file:
        logger.info("Setting transition probabilities...")
        for record in read_transition_probabilities(transition_probabilities_file).records:
            transition_probabilities[(record.from_type, record.to_type)] = record.probability

    transition_stats = {}
    if transition_stats_file:
        logger.info("Setting transition probability statistics...")
        result = read_transition_statistics(transition_stats_file, min_samples=config.min_transition_samples)
        for record in result.records:
            transition_stats[(record.from_type, record.to_type)] = (
                record.scale_diff_mean, record.scale_diff_var, record.angle_mean, record.angle_var)

    model = ProbabilityModel(emission_stats=emission_stats,
                             transition_probabilities=transition_probabilities,
                             transition_stats=transition_stats,
                             atlases=atlases,
                             kde_roi_radius=config.kde_roi_radius)

    # Rows are not renormalised
    for from_type, total in model.row_sums().items():
        if total > 1.0 + 1e-6:
            logger.warning(f"Transition probabilities from {from_type.name} sum to {total:.3f}")
    return model

def label_particles(particles: ParticleSet, model: ProbabilityModel,
                    config: LabelingConfig) -> Tuple[ParticleSet, OrientedForest]:
    """Build the particle graph, orient it and infer generation labels

    Returns:
        The labeled particles and the oriented forest used for inference
    """
    logger.info("Step 1: Building particle graph...")
    graph = build_graph(particles, config)

    logger.info("Step 2: Orienting graph components...")
    forest = build_forest(graph, particles)

    logger.info("Step 3: Running HMM label inference...")
    labeled = infer_labels(forest, particles, model)
    return labeled, forest

def run_generation_labeling(input_file: str, output_file: str, atlas_files: List[str],
                            emission_stats_file: Optional[str] = None,
                            transition_probabilities_file: Optional[str] = None,
                            transition_stats_file: Optional[str] = None,
                            config: Optional[LabelingConfig] = None,
                            print_dice: bool = False,
                            log_file: Optional[str] = None) -> ParticleSet:
    """Run generation labeling from particle files to a labeled particles file

    Args:
        input_file: Airway particles to label
        output_file: Where to write the labeled particles
        atlas_files: Generation labeled atlas particle files
        emission_stats_file: Optional emission statistics csv
        transition_probabilities_file: Optional transition probability csv
        transition_stats_file: Optional transition statistics csv
        config: Run configuration (defaults if omitted)
        print_dice: Report Dice scores against the input's existing labels
        log_file: Optional log file for this run
    """
    config = config or LabelingConfig()

    file_handler = None
    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
        logging.getLogger().addHandler(file_handler)

    try:
        for path in [input_file] + list(atlas_files):
            if not os.path.exists(path):
                raise FileNotFoundError(f"Required input file not found: {path}")

        particles, polydata = read_particles(input_file)

        atlases = []
        for atlas_file in atlas_files:
            logger.info("Reading atlas...")
            atlas, _ = read_particles(atlas_file, require_labels=True)
            atlases.append(atlas)

        model = load_probability_model(config, atlases,
                                       emission_stats_file=emission_stats_file,
                                       transition_probabilities_file=transition_probabilities_file,
                                       transition_stats_file=transition_stats_file)

        labeled, _ = label_particles(particles, model, config)

        logger.info("Writing generation-labeled airway particles...")
        write_particles(attach_chest_types(polydata, labeled.chest_types), output_file)

        if print_dice:
            log_evaluation(particles.chest_types, labeled.chest_types)

        logger.info("Generation labeling completed successfully.")
        return labeled

    except Exception as e:
        logger.error(f"Error during generation labeling: {str(e)}")
        raise
    finally:
        if file_handler is not None:
            logging.getLogger().removeHandler(file_handler)
            file_handler.close()
