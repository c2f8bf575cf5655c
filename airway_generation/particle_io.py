import os
import logging
from typing import Tuple, Optional
import numpy as np

from .data_structures import ParticleSet, MissingParticleFieldError

logger = logging.getLogger(__name__)

SCALE_ARRAY = "scale"
HEVEC2_ARRAY = "hevec2"
CHEST_TYPE_ARRAY = "ChestType"

def _get_array(polydata, name: str) -> Optional[np.ndarray]:
    """Look a particle array up in the field data, then in the point data"""
    from vtk.util import numpy_support

    for data in (polydata.GetFieldData(), polydata.GetPointData()):
        array = data.GetArray(name)
        if array is not None:
            return numpy_support.vtk_to_numpy(array)
    return None

def load_polydata(path: str):
    """Read a legacy .vtk or XML .vtp particles file"""
    import vtk

    if not os.path.exists(path):
        raise FileNotFoundError(f"Particles file not found: {path}")
    if path.lower().endswith('.vtp'):
        reader = vtk.vtkXMLPolyDataReader()
    else:
        reader = vtk.vtkPolyDataReader()
    reader.SetFileName(path)
    reader.Update()
    return reader.GetOutput()

def particles_from_polydata(polydata, require_labels: bool = False) -> ParticleSet:
    """Convert VTK particle polydata to a ParticleSet

    Args:
        polydata: vtkPolyData with 'scale' and 'hevec2' arrays
        require_labels: Fail if the 'ChestType' array is missing (atlases)
    """
    from vtk.util import numpy_support

    n = polydata.GetNumberOfPoints()
    if n > 0:
        positions = numpy_support.vtk_to_numpy(polydata.GetPoints().GetData()).astype(float)
    else:
        positions = np.empty((0, 3))

    scales = _get_array(polydata, SCALE_ARRAY)
    if scales is None:
        raise MissingParticleFieldError(f"Particles have no '{SCALE_ARRAY}' array")
    hevec2 = _get_array(polydata, HEVEC2_ARRAY)
    if hevec2 is None:
        raise MissingParticleFieldError(f"Particles have no '{HEVEC2_ARRAY}' array")
    chest_types = _get_array(polydata, CHEST_TYPE_ARRAY)
    if chest_types is None and require_labels:
        raise MissingParticleFieldError(f"Particles have no '{CHEST_TYPE_ARRAY}' array")
    if chest_types is not None:
        chest_types = np.rint(chest_types).astype(np.int64)

    return ParticleSet(positions, scales, hevec2, chest_types)

def read_particles(path: str, require_labels: bool = False) -> Tuple[ParticleSet, object]:
    """Read a particles file

    Returns:
        The particle set and the source polydata (kept for writing results)
    """
    logger.info(f"Reading particles from {path}")
    polydata = load_polydata(path)
    particles = particles_from_polydata(polydata, require_labels=require_labels)
    logger.info(f"Read {len(particles)} particles")
    return particles, polydata

def attach_chest_types(polydata, chest_types: np.ndarray):
    """Copy of the polydata with the 'ChestType' array overwritten"""
    import vtk
    from vtk.util import numpy_support

    chest_types = np.asarray(chest_types, dtype=np.float32)
    if len(chest_types) != polydata.GetNumberOfPoints():
        raise ValueError(f"{len(chest_types)} labels for {polydata.GetNumberOfPoints()} particles")

    output = vtk.vtkPolyData()
    output.DeepCopy(polydata)

    attached = False
    for data in (output.GetFieldData(), output.GetPointData()):
        if data.GetArray(CHEST_TYPE_ARRAY) is not None:
            data.RemoveArray(CHEST_TYPE_ARRAY)
            array = numpy_support.numpy_to_vtk(chest_types, deep=True)
            array.SetName(CHEST_TYPE_ARRAY)
            data.AddArray(array)
            attached = True

    if not attached:
        array = numpy_support.numpy_to_vtk(chest_types, deep=True)
        array.SetName(CHEST_TYPE_ARRAY)
        output.GetFieldData().AddArray(array)

    return output

def write_particles(polydata, path: str) -> None:
    """Write particle polydata as legacy .vtk or XML .vtp"""
    import vtk

    output_dir = os.path.dirname(path)
    if output_dir:
        os.makedirs(output_dir, exist_ok=True)
    if path.lower().endswith('.vtp'):
        writer = vtk.vtkXMLPolyDataWriter()
    else:
        writer = vtk.vtkPolyDataWriter()
    writer.SetFileName(path)
    writer.SetInputData(polydata)
    writer.Write()
    logger.info(f"Saved labeled particles to: {path}")
