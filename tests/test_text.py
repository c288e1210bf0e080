import pytest

from repairhub.utils.text import extract_json_object, normalize_category, parse_diagnostic_text, parse_parts
from repairhub.utils.config import REPAIRER_CATEGORIES


def test_parses_complexity_and_cost_with_inr():
    text = "The hinge is cracked.\nComplexity: high\nEstimated cost: between 200 and 400 dollars\n"
    parsed = parse_diagnostic_text(text)

    assert parsed.estimated_complexity == "high"
    assert parsed.estimated_cost.min == 200
    assert parsed.estimated_cost.max == 400
    assert parsed.estimated_cost.min_inr == 15000
    assert parsed.estimated_cost.max_inr == 30000


def test_missing_fields_fall_back_to_defaults():
    parsed = parse_diagnostic_text("I could not see the item clearly.")

    assert parsed.estimated_complexity == "medium"
    assert (parsed.estimated_cost.min, parsed.estimated_cost.max) == (50, 150)
    assert (parsed.estimated_cost.min_inr, parsed.estimated_cost.max_inr) == (3750, 11250)
    assert (parsed.estimated_time.min, parsed.estimated_time.max) == (1, 3)
    assert parsed.suggested_parts == ["Required parts will be determined after inspection"]


def test_empty_text_still_returns_complete_result():
    parsed = parse_diagnostic_text("")
    assert parsed.analysis == ""
    assert parsed.estimated_cost.max_inr == 11250


def test_time_range_and_reversed_numbers():
    parsed = parse_diagnostic_text("Estimated time: 6 - 2 hours\nCost: $1,200 - $800")
    assert (parsed.estimated_time.min, parsed.estimated_time.max) == (2, 6)
    assert (parsed.estimated_cost.min, parsed.estimated_cost.max) == (800, 1200)
    assert parsed.estimated_cost.min_inr == 60000


def test_markdown_bold_complexity():
    assert parse_diagnostic_text("**Complexity:** Low").estimated_complexity == "low"


def test_analysis_is_truncated_but_formatted_keeps_everything():
    text = "x" * 1000
    parsed = parse_diagnostic_text(text)
    assert len(parsed.analysis) == 800
    assert parsed.formatted_analysis == text


def test_parse_parts_strips_bullets_and_skips_none():
    text = "Suggested parts:\n- **Battery**\n* Charging port\n1. Screws\n- N/A\n\nOther notes"
    assert parse_parts(text) == ["Battery", "Charging port", "Screws"]


def test_extract_json_from_fenced_block():
    text = 'Here you go:\n```json\n{"verified": false, "message": "Still cracked"}\n```'
    assert extract_json_object(text) == {"verified": False, "message": "Still cracked"}


def test_extract_json_bare_object():
    assert extract_json_object('Result: {"verified": true}')["verified"] is True


def test_extract_json_rejects_garbage():
    with pytest.raises(ValueError):
        extract_json_object("no json here")


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("Electronics", "electronics"),
        ("  plumbing ", "plumbing"),
        ("appliance", "appliances"),
        ("furnitre", "furniture"),
    ],
)
def test_normalize_category(raw, expected):
    assert normalize_category(raw, REPAIRER_CATEGORIES) == expected


def test_normalize_category_unknown():
    assert normalize_category("spaceships", REPAIRER_CATEGORIES) is None
