from enum import IntEnum
from typing import Optional, Tuple

class ChestType(IntEnum):
    """Chest type codes used in the ChestType particle arrays"""
    UNDEFINEDTYPE = 0
    AIRWAYGENERATION0 = 38  # Trachea
    AIRWAYGENERATION1 = 39
    AIRWAYGENERATION2 = 40
    AIRWAYGENERATION3 = 41
    AIRWAYGENERATION4 = 42
    AIRWAYGENERATION5 = 43
    AIRWAYGENERATION6 = 44
    AIRWAYGENERATION7 = 45
    AIRWAYGENERATION8 = 46
    AIRWAYGENERATION9 = 47
    AIRWAYGENERATION10 = 48

# HMM states, ordered by generation (and by code)
GENERATION_TYPES: Tuple[ChestType, ...] = tuple(
    ChestType(ChestType.AIRWAYGENERATION0 + i) for i in range(11)
)

NUM_GENERATIONS = len(GENERATION_TYPES)

def chest_type_from_name(name: str) -> Optional[ChestType]:
    """Resolve a chest type name such as 'AIRWAYGENERATION3'

    Returns None for names that are not part of the convention table.
    """
    key = name.strip().upper()
    if key not in ChestType.__members__:
        return None
    return ChestType[key]

def chest_type_name(code: int) -> str:
    """Name of a chest type code, 'UNDEFINEDTYPE' for unknown codes"""
    try:
        return ChestType(int(code)).name
    except ValueError:
        return ChestType.UNDEFINEDTYPE.name

def is_generation(code: int) -> bool:
    return ChestType.AIRWAYGENERATION0 <= int(code) <= ChestType.AIRWAYGENERATION10

def generation_index(code: int) -> int:
    """Row/column of a generation label in the 11x11 tables"""
    if not is_generation(code):
        raise ValueError(f"Chest type {code} is not an airway generation")
    return int(code) - int(ChestType.AIRWAYGENERATION0)
