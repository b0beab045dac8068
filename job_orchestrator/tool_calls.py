"""Reassembly of tool calls that arrive split across stream chunks."""

import logging
from typing import Dict, Iterable, List

from .models import FunctionCall, ToolCall

logger = logging.getLogger(__name__)


def merge_tool_calls(fragments: Iterable[ToolCall]) -> List[ToolCall]:
    """
    Merge streamed tool-call fragments into complete calls.

    Fragments sharing an index belong to one call:
    - name and arguments are concatenated in arrival order
    - id and type come from the first fragment that carries them
    - a missing index counts as 0

    Calls whose merged name or arguments are empty are dropped. The result
    is ordered by index.
    """
    merged: Dict[int, ToolCall] = {}

    for fragment in fragments:
        index = fragment.index if fragment.index is not None else 0
        call = merged.get(index)
        if call is None:
            call = ToolCall(index=index, function=FunctionCall())
            merged[index] = call

        if fragment.id and not call.id:
            call.id = fragment.id
        if fragment.type and not call.type:
            call.type = fragment.type
        call.function.name += fragment.function.name
        call.function.arguments += fragment.function.arguments

    complete = []
    for index in sorted(merged):
        call = merged[index]
        if not call.function.name or not call.function.arguments:
            logger.warning(
                f"Dropping incomplete tool call index={index} "
                f"name={call.function.name!r} args_len={len(call.function.arguments)}"
            )
            continue
        if not call.type:
            call.type = "function"
        complete.append(call)

    return complete


def index_by_position(tool_calls: Iterable[ToolCall]) -> List[ToolCall]:
    """Tag buffered tool calls with their list position so they never merge."""
    return [
        call.model_copy(update={"index": position})
        for position, call in enumerate(tool_calls)
    ]
