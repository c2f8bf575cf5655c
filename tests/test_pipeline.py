"""End-to-end tests: parameter files, graph, forest and labels."""
import numpy as np
import pytest

from airway_generation.chest_conventions import ChestType, GENERATION_TYPES
from airway_generation.config import LabelingConfig
from airway_generation.data_structures import ParticleSet, MissingParticleFieldError
from airway_generation.pipeline import load_probability_model, label_particles

GEN = GENERATION_TYPES


@pytest.fixture
def parameter_files(tmp_path):
    emission = tmp_path / "emission.csv"
    emission.write_text(
        "name,scaleDiffMean,scaleDiffSTD,distanceMean,distanceSTD,angleMean,angleSTD,numSamples\n"
        "AIRWAYGENERATION0,0.0,1.0,0.0,3.0,0.0,15.0,200\n"
        "AIRWAYGENERATION1,0.0,1.0,0.0,3.0,0.0,15.0,150\n"
        "garbage row\n")

    rows = []
    for i in range(11):
        row = ["0.0"] * 11
        row[min(i + 1, 10)] = "1.0"
        rows.append(",".join(row))
    probabilities = tmp_path / "transitions.csv"
    probabilities.write_text("\n".join(rows) + "\n")

    stats = tmp_path / "transition_stats.csv"
    stats.write_text(
        "fromName,toName,scaleDiffMean,scaleDiffSTD,angleMean,angleSTD,numSamples\n"
        "AIRWAYGENERATION0,AIRWAYGENERATION1,0.5,0.5,10.0,10.0,3\n")
    return str(emission), str(probabilities), str(stats)


class TestLoadProbabilityModel:

    def test_files_populate_model(self, parameter_files):
        emission, probabilities, stats = parameter_files
        model = load_probability_model(LabelingConfig(), emission_stats_file=emission,
                                       transition_probabilities_file=probabilities,
                                       transition_stats_file=stats)
        assert set(model.emission_stats) == {ChestType.AIRWAYGENERATION0, ChestType.AIRWAYGENERATION1}
        assert model.emission_stats[ChestType.AIRWAYGENERATION1].distance_std == 3.0
        # The only statistics row has too few samples
        assert len(model.transition_stats) == 0
        assert model.transition_likelihood(GEN[0], GEN[1]) == 1.0
        assert model.transition_likelihood(GEN[0], GEN[2]) == 0.0
        assert model.kde_roi_radius == np.inf


class TestLabelParticles:

    def test_airway_chain(self, make_particles, parameter_files):
        """A trachea-to-periphery chain follows the generation-increment transitions."""
        emission, probabilities, _ = parameter_files
        # Six particles 1 mm apart along x
        positions = [[float(i), 0.0, 0.0] for i in range(6)]
        scales = [3.0, 2.9, 2.8, 2.7, 2.6, 2.5]
        particles = make_particles(positions, scales=scales)
        atlas = make_particles(positions, scales=scales,
                               chest_types=[int(GEN[0])] * 3 + [int(GEN[1])] * 3)

        config = LabelingConfig()
        model = load_probability_model(config, [atlas], emission_stats_file=emission,
                                       transition_probabilities_file=probabilities)
        labeled, forest = label_particles(particles, model, config)

        assert len(forest) == 1
        assert forest.trees[0].root == 0
        assert labeled.chest_type(0) == ChestType.AIRWAYGENERATION0
        # Every step must move one generation on, so only gen 1 is reachable from the root
        assert labeled.chest_type(1) == ChestType.AIRWAYGENERATION1
        # Generation 2 has no atlas support
        assert labeled.chest_type(2) == ChestType.UNDEFINEDTYPE

    def test_missing_fields_are_fatal(self):
        with pytest.raises(MissingParticleFieldError):
            ParticleSet(np.zeros((2, 3)), None, np.zeros((2, 3)))
        with pytest.raises(MissingParticleFieldError):
            ParticleSet(np.zeros((2, 3)), np.ones(2), np.zeros((1, 3)))


class TestLabelingConfig:

    def test_defaults(self):
        config = LabelingConfig()
        assert config.particle_distance_threshold == 2.0
        assert config.kde_roi_radius == np.inf
        assert config.min_transition_samples == 10

    def test_immutable(self):
        config = LabelingConfig()
        with pytest.raises(AttributeError):
            config.particle_distance_threshold = 5.0

    def test_invalid_values(self):
        with pytest.raises(ValueError):
            LabelingConfig(particle_distance_threshold=-1.0)
        with pytest.raises(ValueError):
            LabelingConfig(kde_roi_radius=0.0)
