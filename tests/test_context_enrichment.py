from __future__ import annotations

from edge_relay.relay.context import (
    CONTEXT_DATA_HEADER,
    CONTEXT_HEADER,
    TRUNCATION_MARKER,
    enrich_system_prompt,
    summarize_attached_context,
)


def test_prompt_unchanged_without_context():
    assert enrich_system_prompt("Be brief.", None) == "Be brief."
    assert enrich_system_prompt("Be brief.", {}) == "Be brief."
    assert enrich_system_prompt("Be brief.", {"artifacts": [], "other": [1]}) == "Be brief."


def test_summary_lines_follow_field_order():
    context = {
        "databases": [{"type": "table"}, {"type": "table"}, {"type": "view"}],
        "artifacts": [{"id": 1}, {"id": 2}],
        "projectMetadata": {"name": "demo"},
    }
    assert summarize_attached_context(context) == [
        "PROJECT METADATA: included",
        "ARTIFACTS: 2 artifacts attached",
        "DATABASE SCHEMAS: 3 items (2 tables, 1 views)",
    ]


def test_enriched_prompt_contains_summary_once_and_json():
    enriched = enrich_system_prompt("Base.", {"requirements": [{"title": "r1"}]})
    assert enriched.startswith("Base.\n\n" + CONTEXT_HEADER)
    assert enriched.count("REQUIREMENTS: 1 requirements attached") == 1
    assert CONTEXT_DATA_HEADER in enriched
    assert '"title": "r1"' in enriched
    assert enriched.rstrip().endswith("all properties and content.")


def test_large_context_is_truncated_with_marker():
    context = {"files": [{"path": f"f{i}.py", "content": "x" * 200} for i in range(50)]}
    enriched = enrich_system_prompt("", context, char_limit=1000)
    data = enriched.split(CONTEXT_DATA_HEADER + "\n", 1)[1]
    assert TRUNCATION_MARKER in data
    assert len(data.split(TRUNCATION_MARKER)[0]) == 1000


def test_no_limit_keeps_full_json():
    context = {"files": [{"content": "y" * 5000}]}
    enriched = enrich_system_prompt("", context, char_limit=None)
    assert TRUNCATION_MARKER not in enriched
    assert "y" * 5000 in enriched


def test_repeated_enrichment_adds_one_block_per_call():
    context = {"requirements": [{"title": "r1"}], "artifacts": [{"id": 1}]}
    first = enrich_system_prompt("Base.", context)
    second = enrich_system_prompt("Base.", context)

    assert first == second
    for enriched in (first, second):
        assert enriched.count(CONTEXT_HEADER) == 1
        assert enriched.count("REQUIREMENTS: 1 requirements attached") == 1
        assert enriched.count("ARTIFACTS: 1 artifacts attached") == 1
        assert enriched.count(CONTEXT_DATA_HEADER) == 1
