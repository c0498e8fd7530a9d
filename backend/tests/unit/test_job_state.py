"""
Unit Tests for Job State Transitions
"""

import pytest

from swapvid.services.job_state import JobStateError, is_terminal_state, source_states


def test_source_states():
    assert source_states("processing") == ["pending"]
    assert source_states("complete") == ["processing"]
    assert source_states("failed") == ["pending", "processing"]
    assert source_states("pending") == []


def test_source_states_unknown():
    with pytest.raises(JobStateError):
        source_states("SUCCEEDED")


def test_is_terminal_state():
    """Terminal states are identified correctly."""
    assert is_terminal_state("complete") is True
    assert is_terminal_state("failed") is True
    assert is_terminal_state("pending") is False
    assert is_terminal_state("processing") is False
    assert is_terminal_state(None) is False
