from enum import StrEnum


class ItemType(StrEnum):
    SEAT = 'seat'
    RV = 'rv'
    STALL = 'stall'
    CLASS_ENTRY = 'class_entry'


class CapacityKind(StrEnum):
    """Counter families kept per event; class lines are additionally keyed by line id"""

    SEAT = 'seat'
    RV = 'rv'
    STALL = 'stall'
    CLASS_LINE = 'class_line'
