"""Tests for checklist markup in a goal's `how` field."""

import pytest

from ward_planner.tenants.checklist import (
    ChecklistLine,
    has_pending_steps,
    parse_checklist,
    render_checklist,
    toggle_step,
)


def test_empty_text_is_one_blank_step():
    assert parse_checklist("") == [ChecklistLine(text="")]


def test_parse_mixed_markup():
    lines = parse_checklist("[x] Call bishop\n[ ] Visit family\n• Old bullet\nplain")
    assert [(line.text, line.checked) for line in lines] == [
        ("Call bishop", True),
        ("Visit family", False),
        ("Old bullet", False),
        ("plain", False),
    ]


def test_render_normalizes_legacy_lines():
    assert render_checklist(parse_checklist("• a\n[x] b")) == "[ ] a\n[x] b"


def test_has_pending_steps():
    assert has_pending_steps("[x] a\n[ ] b")
    assert not has_pending_steps("[x] a\n[x] b")
    assert not has_pending_steps("free text")
    assert not has_pending_steps("")


def test_toggle_step():
    how = "[ ] a\n[ ] b"
    how = toggle_step(how, 1)
    assert how == "[ ] a\n[x] b"
    how = toggle_step(how, 0)
    assert not has_pending_steps(how)
    with pytest.raises(IndexError):
        toggle_step(how, 5)
