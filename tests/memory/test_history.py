import pytest

from heapscope.memory.blocks import ConflictKind
from heapscope.memory.conf import HistoryConfig
from heapscope.memory.history import HeapHistory
from heapscope.memory.window import ADDRESS_MAX, ContinuousHeapWindow, HeapWindow, Saturation
from heapscope.tools.decorator import StaleIndexError


class TestScenarios:
    """End to end behaviour of a history built through the public API."""

    def test_malloc_then_free(self, malloc_free_history):
        assert len(malloc_free_history.blocks) == 1
        block = malloc_free_history.blocks[0]
        assert block.alloc_tick == 0
        assert block.free_tick == 1
        assert malloc_free_history.event_log.live_positions() == {}
        assert len(malloc_free_history.conflicts) == 0

    def test_double_malloc(self, history):
        history.record_malloc(0x1000, 16, 0)
        history.record_malloc(0x1000, 16, 0)

        assert len(history.blocks) == 2
        assert len(history.conflicts) == 1
        assert history.conflicts[0].kind is ConflictKind.ALLOC
        assert history.conflicts[0].address == 0x1000
        assert history.event_log.live_positions() == {(0x1000, 0): 1}

    def test_free_without_malloc(self, history):
        history.record_free(0x2000, 0)
        assert len(history.blocks) == 0
        assert len(history.conflicts) == 1
        assert history.conflicts[0].kind is ConflictKind.FREE

    def test_global_area_after_malloc_and_free(self, malloc_free_history):
        assert malloc_free_history.get_minimum_address() == 0x1000
        assert malloc_free_history.get_maximum_address() == 0x1010
        assert malloc_free_history.get_minimum_tick() == 0
        assert malloc_free_history.get_maximum_tick() == 1

    def test_zoom_to_centre_halves_window(self, history):
        history.set_current_window(HeapWindow(0, 0x10000, 0, 100))
        states = history.zoom_to_point(0.5, 0.5, 0.5, 0.5)

        assert states == (Saturation.NONE, Saturation.NONE)
        assert history.current_window.to_window() == HeapWindow(0x4000, 0xC000, 25, 75)


class TestIndexConsistency:
    """The index is rebuilt by every record call and once per batch."""

    def test_queries_see_new_events_immediately(self, history):
        history.record_malloc(0x1000, 16)
        assert history.get_block_at(0x1008, 0)[0] == 0
        history.record_free(0x1000)
        assert history.get_block_at(0x1008, 1) is None
        history.record_realloc(0x1000, 0x2000, 8)
        assert history.get_block_at(0x2000, 3)[0] == 1

    def test_batch_defers_rebuild(self, history):
        with history.batch():
            history.record_malloc(0x1000, 16)
            history.record_malloc(0x2000, 16)
            with pytest.raises(StaleIndexError):
                history.get_block_at(0x1000, 0)
        assert history.get_block_at(0x2000, 1)[0] == 1

    def test_nested_batches_rebuild_once_at_the_end(self, history):
        with history.batch():
            with history.batch():
                history.record_malloc(0x1000, 16)
            with pytest.raises(StaleIndexError):
                history.get_block_at(0x1000, 0)
        assert history.get_block_at(0x1000, 0) is not None

    def test_batch_rebuilds_after_error(self, history):
        with pytest.raises(ValueError):
            with history.batch():
                history.record_malloc(0x1000, 16)
                history.record_malloc(-1, 16)
        assert history.get_block_at(0x1000, 0)[0] == 0

    def test_rejected_event_keeps_index_current(self, history):
        history.record_malloc(0x1000, 16)
        with pytest.raises(ValueError):
            history.record_free(0x1000, heap_id=999)
        assert history.get_block_at(0x1000, 0)[0] == 0


class TestWindowHandling:
    """Test cases for the current window and its helpers."""

    def test_new_history_has_zero_window(self, history):
        assert history.current_window.to_window() == HeapWindow()
        assert history.get_active_blocks() == []

    def test_set_current_window_to_global(self, layered_history):
        layered_history.set_current_window_to_global()
        assert layered_history.current_window.to_window() == HeapWindow(0x1000, 0x3040, 0, 5)
        assert sorted(layered_history.get_active_blocks()) == [0, 1, 2, 3]

    def test_set_current_window_clears_remainders(self, history):
        history.set_current_window(HeapWindow(0, 0x1000, 0, 100))
        history.pan_current_window(0.5, 0.25)
        history.set_current_window(HeapWindow(0, 0x1000, 0, 100))
        assert history.current_window.x_shift == 0.0
        assert history.current_window.y_shift == 0.0

    def test_pan_current_window(self, history):
        history.set_current_window(HeapWindow(0x1000, 0x2000, 10, 20))
        assert history.pan_current_window(-5, 0x100) == (Saturation.NONE, Saturation.NONE)
        assert history.current_window.to_window() == HeapWindow(0x1100, 0x2100, 5, 15)

    def test_pan_reports_clamping(self, history):
        history.set_current_window(HeapWindow(0x1000, 0x2000, 10, 20))
        tick_state, address_state = history.pan_current_window(-50, 0)
        assert tick_state is Saturation.UNDERFLOW
        assert address_state is Saturation.NONE
        assert history.current_window.minimum_tick == 0

    def test_window_is_independent_of_history(self, layered_history):
        layered_history.set_current_window(HeapWindow(0x1000, 0x2000, 0, 3))
        layered_history.record_malloc(0x8000, 16)
        assert layered_history.current_window.to_window() == HeapWindow(0x1000, 0x2000, 0, 3)

    def test_low_high_address_split(self, history):
        history.set_current_window(HeapWindow(0x1_0000_0010, 0xFFFF_FFFF_0000_0020, 0, 1))
        window = history.current_window
        assert window.minimum_address_low32 == 0x10
        assert window.minimum_address_high32 == 0x1
        assert window.maximum_address_low32 == 0x20
        assert window.maximum_address_high32 == 0xFFFF_FFFF


class TestGridWindow:
    """Test cases for the power-of-two aligned grid window."""

    def test_grid_window_alignment(self, history):
        history.set_current_window(HeapWindow(0x1003, 0x10F0, 3, 97))
        grid = history.get_grid_window(10)

        assert isinstance(grid, ContinuousHeapWindow)
        assert grid.to_window() == HeapWindow(0x1000, 0x1100, 0, 112)

    def test_grid_window_contains_current_window(self, make_random_history, make_random_windows):
        history = make_random_history(7)
        for window in make_random_windows(7, 50, history.global_area):
            history.set_current_window(window)
            grid = history.get_grid_window(8)
            assert grid.minimum_address <= window.minimum_address
            assert grid.maximum_address >= window.maximum_address
            assert grid.minimum_tick <= window.minimum_tick
            assert grid.maximum_tick >= window.maximum_tick

    def test_degenerate_window_is_unchanged(self, history):
        history.set_current_window(HeapWindow(0x1001, 0x1001, 5, 5))
        assert history.get_grid_window(4).to_window() == HeapWindow(0x1001, 0x1001, 5, 5)

    def test_grid_window_saturates(self, history):
        history.set_current_window(HeapWindow(ADDRESS_MAX - 5, ADDRESS_MAX, 0, 1))
        grid = history.get_grid_window(1)
        assert grid.minimum_address == ADDRESS_MAX + 1 - 8
        assert grid.maximum_address == ADDRESS_MAX

    def test_default_line_count_comes_from_config(self):
        history = HeapHistory(HistoryConfig(grid_lines=1))
        history.set_current_window(HeapWindow(0, 100, 0, 100))
        assert history.get_grid_window().to_window() == HeapWindow(0, 128, 0, 128)

    def test_current_window_untouched(self, history):
        history.set_current_window(HeapWindow(0x1003, 0x10F0, 3, 97))
        history.get_grid_window(10)
        assert history.current_window.to_window() == HeapWindow(0x1003, 0x10F0, 3, 97)

    def test_zero_lines_rejected(self, history):
        with pytest.raises(ValueError):
            history.get_grid_window(0)


class TestSummary:
    """Test cases for summary()"""

    def test_layered_summary(self, layered_history):
        layered_history.set_current_window_to_global()
        summary = layered_history.summary()

        assert summary["blocks"] == 4
        assert summary["live_blocks"] == 1
        assert summary["current_tick"] == 6
        assert summary["alloc_conflicts"] == 1
        assert summary["free_conflicts"] == 1
        assert summary["global_area"]["minimum_address_hex"] == "0x1000"
        assert summary["global_area"]["maximum_address_hex"] == "0x3040"
        assert summary["current_window"] == summary["global_area"]

    def test_empty_summary(self, history):
        summary = history.summary()
        assert summary["blocks"] == 0
        assert summary["current_tick"] == 0
        assert summary["global_area"]["width"] == 0
