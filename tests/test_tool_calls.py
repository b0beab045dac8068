from job_orchestrator.models import FunctionCall, ToolCall
from job_orchestrator.tool_calls import index_by_position, merge_tool_calls


def fragment(index=None, name="", arguments="", call_id="", type_=""):
    return ToolCall(
        index=index, id=call_id, type=type_,
        function=FunctionCall(name=name, arguments=arguments),
    )


def test_fragments_grouped_by_index_and_incomplete_dropped():
    merged = merge_tool_calls([
        fragment(0, name="a"),
        fragment(1, name="b"),
        fragment(0, arguments="1"),
    ])

    assert len(merged) == 1
    assert merged[0].function.name == "a"
    assert merged[0].function.arguments == "1"


def test_arguments_concatenate_in_arrival_order():
    merged = merge_tool_calls([
        fragment(0, name="query", call_id="call_1", type_="function"),
        fragment(0, name="JobsByArea", arguments='{"jobTitle"'),
        fragment(0, arguments=': "Java"}'),
    ])

    assert merged[0].function.name == "queryJobsByArea"
    assert merged[0].function.arguments == '{"jobTitle": "Java"}'


def test_id_and_type_keep_first_non_empty_value():
    merged = merge_tool_calls([
        fragment(0, name="x", call_id=""),
        fragment(0, arguments="{}", call_id="call_a"),
        fragment(0, call_id="call_b", type_="other"),
    ])

    assert merged[0].id == "call_a"
    assert merged[0].type == "other"


def test_type_defaults_to_function():
    merged = merge_tool_calls([fragment(0, name="x", arguments="{}")])
    assert merged[0].type == "function"


def test_missing_index_counts_as_zero():
    merged = merge_tool_calls([
        fragment(None, name="parse"),
        fragment(0, arguments="{}"),
    ])
    assert [c.function.name for c in merged] == ["parse"]


def test_result_is_ordered_by_index():
    merged = merge_tool_calls([
        fragment(2, name="c", arguments="{}"),
        fragment(0, name="a", arguments="{}"),
        fragment(1, name="b", arguments="{}"),
    ])
    assert [c.function.name for c in merged] == ["a", "b", "c"]
    assert [c.index for c in merged] == [0, 1, 2]


def test_buffered_calls_never_merge():
    calls = [
        fragment(name="queryLocation", arguments='{"keywords": "五四广场"}', call_id="c1"),
        fragment(name="queryPolicy", arguments='{"message": "subsidy"}', call_id="c2"),
    ]

    merged = merge_tool_calls(index_by_position(calls))

    assert [c.id for c in merged] == ["c1", "c2"]
    assert merged[1].function.arguments == '{"message": "subsidy"}'
