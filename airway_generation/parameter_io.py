"""
Readers for the statistics files produced by the offline training tool.

Every reader returns a ParseResult. Parsing stops at the first row that is
malformed or names an unknown chest type; the rows read before it stay valid.
"""

import csv
import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Union, Generic, TypeVar, Tuple, Optional

from .chest_conventions import ChestType, GENERATION_TYPES, chest_type_from_name

logger = logging.getLogger(__name__)

Source = Union[str, os.PathLike, Iterable[str]]
T = TypeVar('T')

class RowStatus(Enum):
    """Outcome of parsing a parameter file"""
    OK = 0
    END_OF_DATA = 1
    MALFORMED = 2
    UNKNOWN_TYPE = 3

@dataclass
class ParseResult(Generic[T]):
    records: List[T] = field(default_factory=list)
    status: RowStatus = RowStatus.END_OF_DATA
    line_number: Optional[int] = None  # Line that stopped parsing, if any

    @property
    def truncated(self) -> bool:
        return self.status in (RowStatus.MALFORMED, RowStatus.UNKNOWN_TYPE)

    def __len__(self) -> int:
        return len(self.records)

@dataclass(frozen=True)
class EmissionStatsRecord:
    chest_type: ChestType
    scale_diff_mean: float
    scale_diff_std: float
    distance_mean: float
    distance_std: float
    angle_mean: float
    angle_std: float
    sample_count: float

@dataclass(frozen=True)
class TransitionStatsRecord:
    from_type: ChestType
    to_type: ChestType
    scale_diff_mean: float
    scale_diff_std: float
    angle_mean: float
    angle_std: float
    sample_count: float

    @property
    def scale_diff_var(self) -> float:
        return self.scale_diff_std ** 2

    @property
    def angle_var(self) -> float:
        return self.angle_std ** 2

@dataclass(frozen=True)
class TransitionProbabilityRecord:
    from_type: ChestType
    to_type: ChestType
    probability: float

def _read_lines(source: Source) -> List[str]:
    if isinstance(source, (str, os.PathLike)):
        if not os.path.exists(source):
            raise FileNotFoundError(f"Parameter file not found: {source}")
        with open(source, 'r', newline='') as f:
            return f.read().splitlines()
    return [line.rstrip('\r\n') for line in source]

def _tokenize(lines: List[str], skip_header: bool) -> Iterable[Tuple[int, List[str]]]:
    """Yield (line number, fields) for each non-blank data row"""
    start = 1 if skip_header else 0
    for line_number, row in enumerate(csv.reader(lines[start:]), start=start + 1):
        fields = [value.strip() for value in row]
        if not any(fields):
            # Blank line marks the end of the data
            return
        yield line_number, fields

def _to_floats(values: List[str]) -> Optional[List[float]]:
    try:
        return [float(v) for v in values]
    except ValueError:
        return None

def _stop(result: ParseResult, status: RowStatus, line_number: int, source_name: str) -> ParseResult:
    result.status = status
    result.line_number = line_number
    logger.warning(f"Stopped reading {source_name} at line {line_number} ({status.name}); "
                   f"kept {len(result.records)} rows")
    return result

def _source_name(source: Source) -> str:
    return os.fspath(source) if isinstance(source, (str, os.PathLike)) else '<lines>'

def read_emission_statistics(source: Source) -> ParseResult[EmissionStatsRecord]:
    """Read an emission statistics file

    Columns: name, scaleDiffMean, scaleDiffSTD, distanceMean, distanceSTD,
    angleMean, angleSTD, numSamples. The first line is a header.
    """
    name = _source_name(source)
    result: ParseResult[EmissionStatsRecord] = ParseResult()
    for line_number, fields in _tokenize(_read_lines(source), skip_header=True):
        chest_type = chest_type_from_name(fields[0])
        if chest_type is None or chest_type == ChestType.UNDEFINEDTYPE:
            return _stop(result, RowStatus.UNKNOWN_TYPE, line_number, name)
        values = _to_floats(fields[1:8])
        if values is None or len(values) != 7:
            return _stop(result, RowStatus.MALFORMED, line_number, name)
        result.records.append(EmissionStatsRecord(chest_type, *values))

    logger.info(f"Read {len(result)} emission statistics rows from {name}")
    return result

def read_transition_probabilities(source: Source) -> ParseResult[TransitionProbabilityRecord]:
    """Read the 11x11 transition probability grid

    One row per 'from' generation, one comma separated column per 'to'
    generation, no header.
    """
    name = _source_name(source)
    result: ParseResult[TransitionProbabilityRecord] = ParseResult()
    for line_number, fields in _tokenize(_read_lines(source), skip_header=False):
        row = line_number - 1
        if row >= len(GENERATION_TYPES):
            break
        values = _to_floats(fields[:len(GENERATION_TYPES)])
        if values is None or len(values) != len(GENERATION_TYPES):
            return _stop(result, RowStatus.MALFORMED, line_number, name)
        from_type = GENERATION_TYPES[row]
        for to_type, probability in zip(GENERATION_TYPES, values):
            result.records.append(TransitionProbabilityRecord(from_type, to_type, probability))

    logger.info(f"Read {len(result) // len(GENERATION_TYPES)} transition probability rows from {name}")
    return result

def read_transition_statistics(source: Source, min_samples: int = 10) -> ParseResult[TransitionStatsRecord]:
    """Read a transition statistics file

    Columns: fromName, toName, scaleDiffMean, scaleDiffSTD, angleMean,
    angleSTD, numSamples. The first line is a header. Rows with no more than
    min_samples samples are skipped.
    """
    name = _source_name(source)
    result: ParseResult[TransitionStatsRecord] = ParseResult()
    skipped = 0
    for line_number, fields in _tokenize(_read_lines(source), skip_header=True):
        if len(fields) < 2:
            return _stop(result, RowStatus.MALFORMED, line_number, name)
        from_type = chest_type_from_name(fields[0])
        to_type = chest_type_from_name(fields[1])
        if from_type is None or to_type is None:
            return _stop(result, RowStatus.UNKNOWN_TYPE, line_number, name)
        values = _to_floats(fields[2:7])
        if values is None or len(values) != 5:
            return _stop(result, RowStatus.MALFORMED, line_number, name)
        record = TransitionStatsRecord(from_type, to_type, *values)
        if record.sample_count <= min_samples:
            skipped += 1
            continue
        result.records.append(record)

    logger.info(f"Read {len(result)} transition statistics rows from {name} "
                f"({skipped} skipped with <= {min_samples} samples)")
    return result
