"""Display helpers for indexed data.

Stored values are never rewritten here; these mappings only affect how
values are shown in reports.
"""
from typing import Dict, Optional

# Decode outcomes shown under a common label
PROGRAM_TYPE_ALIASES = {
    'SettleTraderOrderNegativeMarginDifference': 'SettleTraderOrder',
}

def display_program_type(program_type: Optional[str]) -> Optional[str]:
    """Return the display label for a stored zkOS program type."""
    if program_type is None:
        return None
    return PROGRAM_TYPE_ALIASES.get(program_type, program_type)

def merge_program_type_counts(counts: Dict[Optional[str], int]) -> Dict[str, int]:
    """Fold per-program-type counts onto their display labels."""
    merged: Dict[str, int] = {}
    for program_type, count in counts.items():
        label = display_program_type(program_type) or 'unknown'
        merged[label] = merged.get(label, 0) + count
    return dict(sorted(merged.items(), key=lambda item: (-item[1], item[0])))
