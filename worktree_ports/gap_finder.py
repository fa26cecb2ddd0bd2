"""
First-fit gap search over recorded port blocks.
"""

import logging
from typing import Iterable, List

from .errors import NoSpaceError
from .record_store import AllocationRecord


logger = logging.getLogger(__name__)

DEFAULT_BASE = 40000
DEFAULT_CEILING = 65535


def occupied_blocks(records: Iterable[AllocationRecord]) -> List[AllocationRecord]:
    """
    Drop empty records and sort the rest by start port.
    
    Args:
        records: Records in any order, possibly including empty ones
    
    Returns:
        Non-empty records in ascending start_port order
    """
    return sorted(r for r in records if not r.is_empty)


def find_gap(
    sorted_records: Iterable[AllocationRecord],
    needed: int,
    base: int = DEFAULT_BASE,
    ceiling: int = DEFAULT_CEILING
) -> int:
    """
    Find the lowest start port of a free contiguous block.
    
    The records must be ordered by start_port. They may overlap (a hand
    edited index file can produce that); the cursor only ever moves
    forward, so overlapping blocks cannot stall the search.
    
    Args:
        sorted_records: Occupied blocks in ascending start_port order
        needed: Number of consecutive ports required
        base: Lowest port that may be handed out
        ceiling: Upper bound; a block is accepted when start + needed <= ceiling
    
    Returns:
        First port of the free block (base when needed is 0)
    
    Raises:
        NoSpaceError: If no gap of the requested size exists
        ValueError: If needed is negative
    """
    if needed < 0:
        raise ValueError(f"needed must be >= 0, got {needed}")
    if needed == 0:
        return base
    
    cursor = base
    for record in sorted_records:
        if record.is_empty:
            continue
        if cursor + needed <= record.start_port:
            break
        cursor = max(cursor, record.end_port)
    
    if cursor + needed <= ceiling:
        logger.debug(f"Found gap of {needed} ports at {cursor}")
        return cursor
    
    raise NoSpaceError(
        "Not enough ports available",
        needed=needed,
        base=base,
        ceiling=ceiling
    )
