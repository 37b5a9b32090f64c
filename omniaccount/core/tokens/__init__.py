from .mapping import TokenMapping, TokenMappingTable, preset_table
from .units import format_units, parse_units

__all__ = [
    "TokenMapping",
    "TokenMappingTable",
    "preset_table",
    "format_units",
    "parse_units",
]
