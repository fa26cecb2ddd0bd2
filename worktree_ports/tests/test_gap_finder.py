"""
Tests for the gap search and the port plan builder.
"""

import pytest

from worktree_ports import (
    AllocationRecord,
    NoSpaceError,
    PortPlan,
    build_plan,
    dedupe_requirement,
    find_gap,
    occupied_blocks,
)


def records(*pairs):
    return [AllocationRecord(start, size) for start, size in pairs]


# ============================================================================
# find_gap Tests
# ============================================================================

class TestFindGap:
    """Tests for the first-fit gap search."""
    
    def test_empty_registry_starts_at_base(self):
        """No allocations means the block starts at the base port."""
        assert find_gap([], 3, 40000, 65535) == 40000
    
    def test_gap_after_single_block(self):
        """A block right after the only allocation."""
        assert find_gap(records((40000, 3)), 2, 40000, 65535) == 40003
    
    def test_lowest_gap_between_blocks(self):
        """Unsorted input, once sorted, yields the hole between two blocks."""
        sorted_records = occupied_blocks(records((40010, 2), (40000, 2)))
        assert find_gap(sorted_records, 2, 40000, 65535) == 40002
    
    def test_gap_too_small_is_skipped(self):
        """A hole smaller than needed is passed over."""
        sorted_records = records((40000, 2), (40004, 2))
        assert find_gap(sorted_records, 3, 40000, 65535) == 40006
    
    def test_exact_fit_gap(self):
        """A hole of exactly the needed size is used."""
        sorted_records = records((40000, 2), (40005, 1))
        assert find_gap(sorted_records, 3, 40000, 65535) == 40002
    
    def test_gap_below_first_block(self):
        """Space between base and the first block is used first."""
        assert find_gap(records((40010, 5)), 4, 40000, 65535) == 40000
    
    def test_needed_zero_returns_base(self):
        """A zero-size request consumes nothing."""
        assert find_gap(records((40000, 10)), 0, 40000, 65535) == 40000
    
    def test_negative_needed_rejected(self):
        """Negative sizes are programming errors."""
        with pytest.raises(ValueError):
            find_gap([], -1, 40000, 65535)
    
    def test_exhausted_space(self):
        """A full port space raises NoSpaceError."""
        with pytest.raises(NoSpaceError) as exc_info:
            find_gap(records((40000, 6)), 1, 40000, 40005)
        
        assert exc_info.value.needed == 1
        assert "40000-40005" in str(exc_info.value)
    
    def test_ceiling_is_exclusive_bound_for_end(self):
        """start + needed may equal the ceiling but not exceed it."""
        assert find_gap(records((40000, 3)), 2, 40000, 40005) == 40003
        with pytest.raises(NoSpaceError):
            find_gap(records((40000, 4)), 2, 40000, 40005)
    
    def test_overlapping_records_make_progress(self):
        """Overlapping input from hand edits still terminates correctly."""
        sorted_records = occupied_blocks(records((40000, 10), (40002, 3), (40005, 2)))
        assert find_gap(sorted_records, 2, 40000, 65535) == 40010
    
    def test_records_below_base_are_ignored(self):
        """Blocks entirely below base do not push the cursor back."""
        sorted_records = records((30000, 5), (40003, 2))
        assert find_gap(sorted_records, 3, 40000, 65535) == 40000
    
    def test_empty_records_ignored(self):
        """Zero-size records occupy nothing."""
        sorted_records = records((40000, 0), (40000, 0))
        assert find_gap(sorted_records, 2, 40000, 65535) == 40000
    
    def test_block_beyond_ceiling_does_not_allow_overflow(self):
        """A gap found before an out-of-range block still respects the ceiling."""
        sorted_records = records((40000, 4), (50000, 1))
        with pytest.raises(NoSpaceError):
            find_gap(sorted_records, 3, 40000, 40005)


class TestOccupiedBlocks:
    """Tests for occupied_blocks."""
    
    def test_sorts_and_drops_empty(self):
        result = occupied_blocks(records((40010, 2), (40000, 0), (40000, 3)))
        assert result == records((40000, 3), (40010, 2))


# ============================================================================
# Plan Builder Tests
# ============================================================================

class TestBuildPlan:
    """Tests for build_plan and PortPlan."""
    
    def test_plan_is_deterministic(self):
        """Names map to consecutive ports in requirement order."""
        assert build_plan(["DB_PORT", "WEB_PORT"], 40000) == {"DB_PORT": 40000, "WEB_PORT": 40001}
        assert build_plan(["DB_PORT", "WEB_PORT"], 40000) == {"DB_PORT": 40000, "WEB_PORT": 40001}
    
    def test_plan_preserves_order(self):
        plan = build_plan(["WEB_PORT", "DB_PORT", "CACHE_PORT"], 41000)
        assert list(plan.items()) == [("WEB_PORT", 41000), ("DB_PORT", 41001), ("CACHE_PORT", 41002)]
    
    def test_empty_requirement(self):
        """An empty requirement gives an empty plan, not an error."""
        assert build_plan([], 40000) == {}
    
    def test_dedupe_keeps_first_occurrence(self):
        assert dedupe_requirement(["A_PORT", "B_PORT", "A_PORT", "C_PORT", "B_PORT"]) == [
            "A_PORT", "B_PORT", "C_PORT"
        ]
    
    def test_port_plan_from_record_dedupes(self):
        plan = PortPlan.from_record(AllocationRecord(40010, 2), ["DB_PORT", "DB_PORT", "WEB_PORT"])
        
        assert plan["DB_PORT"] == 40010
        assert plan["WEB_PORT"] == 40011
        assert len(plan) == 2
        assert "DB_PORT" in plan
    
    def test_env_lines(self):
        plan = PortPlan.from_record(AllocationRecord(40000, 2), ["DB_PORT", "WEB_PORT"])
        lines = plan.to_env_lines({"WORKTREE_NAME": "feature-x"})
        
        assert lines == ["WORKTREE_NAME=feature-x", "DB_PORT=40000", "WEB_PORT=40001"]
    
    def test_describe_table(self):
        plan = PortPlan.from_record(AllocationRecord(40000, 2), ["DB_PORT", "WEB_PORT"])
        text = plan.describe()
        
        assert "range: 40000-40001" in text
        assert "DB_PORT" in text
        assert "40001" in text
    
    def test_describe_without_template(self):
        plan = PortPlan.from_record(AllocationRecord(40000, 3), [])
        text = plan.describe()
        
        assert "start_port:  40000" in text
        assert "block_size:  3" in text
    
    def test_describe_empty_record(self):
        plan = PortPlan.from_record(AllocationRecord(40000, 0), [])
        assert plan.describe() == "No ports allocated for this worktree."
