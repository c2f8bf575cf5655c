"""Tests for VTK particle reading and writing."""
import numpy as np
import pytest

vtk = pytest.importorskip("vtk")
from vtk.util import numpy_support

from airway_generation.chest_conventions import ChestType
from airway_generation.data_structures import MissingParticleFieldError
from airway_generation.particle_io import (
    particles_from_polydata,
    attach_chest_types,
    read_particles,
    write_particles,
)
from airway_generation.pipeline import run_generation_labeling


def make_polydata(positions, scales=None, hevec2=None, chest_types=None):
    positions = np.asarray(positions, dtype=float)
    n = len(positions)
    points = vtk.vtkPoints()
    for p in positions:
        points.InsertNextPoint(*p)
    polydata = vtk.vtkPolyData()
    polydata.SetPoints(points)

    arrays = {
        "scale": np.ones(n) if scales is None else np.asarray(scales, dtype=float),
        "hevec2": np.tile([1.0, 0.0, 0.0], (n, 1)) if hevec2 is None else np.asarray(hevec2, dtype=float),
    }
    if chest_types is not None:
        arrays["ChestType"] = np.asarray(chest_types, dtype=np.float32)
    for name, values in arrays.items():
        array = numpy_support.numpy_to_vtk(values.astype(np.float32), deep=True)
        array.SetName(name)
        polydata.GetFieldData().AddArray(array)
    return polydata


class TestParticlesFromPolydata:

    def test_arrays_read(self):
        polydata = make_polydata([[0, 0, 0], [1, 2, 3]], scales=[1.5, 2.5],
                                 chest_types=[38, 40])
        particles = particles_from_polydata(polydata)
        assert len(particles) == 2
        np.testing.assert_array_almost_equal(particles.position(1), [1, 2, 3])
        assert particles.scale(1) == pytest.approx(2.5)
        assert particles.chest_type(1) == ChestType.AIRWAYGENERATION2

    def test_missing_hevec2_is_fatal(self):
        polydata = make_polydata([[0, 0, 0]])
        polydata.GetFieldData().RemoveArray("hevec2")
        with pytest.raises(MissingParticleFieldError):
            particles_from_polydata(polydata)

    def test_atlas_requires_labels(self):
        polydata = make_polydata([[0, 0, 0]])
        assert particles_from_polydata(polydata).chest_type(0) == ChestType.UNDEFINEDTYPE
        with pytest.raises(MissingParticleFieldError):
            particles_from_polydata(polydata, require_labels=True)


class TestWriteParticles:

    def test_chest_types_overwritten(self, tmp_path):
        polydata = make_polydata([[0, 0, 0], [1, 0, 0]], chest_types=[0, 0])
        labeled = attach_chest_types(polydata, np.array([38, 39]))
        path = str(tmp_path / "out.vtk")
        write_particles(labeled, path)

        particles, _ = read_particles(path)
        assert particles.chest_types.tolist() == [38, 39]
        # The source polydata is left alone
        assert particles_from_polydata(polydata).chest_types.tolist() == [0, 0]

    def test_label_count_checked(self):
        with pytest.raises(ValueError):
            attach_chest_types(make_polydata([[0, 0, 0]]), np.array([38, 39]))


class TestRunGenerationLabeling:

    def test_end_to_end(self, tmp_path):
        positions = [[float(i), 0.0, 0.0] for i in range(4)]
        scales = [3.0, 2.9, 2.8, 2.7]
        input_path = str(tmp_path / "particles.vtk")
        atlas_path = str(tmp_path / "atlas.vtk")
        output_path = str(tmp_path / "labeled" / "particles.vtk")
        write_particles(make_polydata(positions, scales=scales, chest_types=[38, 38, 39, 39]), input_path)
        write_particles(make_polydata(positions, scales=scales, chest_types=[38, 38, 39, 39]), atlas_path)

        labeled = run_generation_labeling(input_path, output_path, [atlas_path], print_dice=True,
                                          log_file=str(tmp_path / "labeling.log"))

        written, _ = read_particles(output_path)
        assert written.chest_types.tolist() == labeled.chest_types.tolist()
        assert written.chest_type(0) == ChestType.AIRWAYGENERATION0
        assert (tmp_path / "labeling.log").exists()

    def test_missing_input(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            run_generation_labeling(str(tmp_path / "nope.vtk"), str(tmp_path / "out.vtk"), [])
