"""Per-turn orchestration state."""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from .content_filter import ReasoningSpanFilter
from .models import ChatCompletionChunk, ChatMessage, ToolCall

logger = logging.getLogger(__name__)


@dataclass
class OrchestrationState:
    """
    State of one conversation turn.

    Tracks:
    - Messages sent to the backend (system prompt first)
    - Tool choice for the next backend call
    - Guard flags (job intent, job tool success, apology sent)
    - Reasoning-span filter and the chunks held by the guard
    - Per-round accumulators, reset by begin_round()

    Created when a request arrives and dropped when it ends; never shared
    between requests.
    """
    messages: List[ChatMessage] = field(default_factory=list)
    tool_choice: Union[str, Dict[str, Any]] = "auto"
    job_intent: bool = False
    domain_tool_succeeded: bool = False
    notice_sent: bool = False
    span_filter: ReasoningSpanFilter = field(default_factory=ReasoningSpanFilter)
    pending_chunks: List[ChatCompletionChunk] = field(default_factory=list)
    iteration: int = 0

    # Current round
    assistant_content: List[str] = field(default_factory=list)
    tool_fragments: List[ToolCall] = field(default_factory=list)
    finish_reason: Optional[str] = None

    def begin_round(self):
        """Advance to the next backend call and clear the round accumulators."""
        self.iteration += 1
        self.assistant_content = []
        self.tool_fragments = []
        self.finish_reason = None
        self.pending_chunks = []
        logger.debug(f"Round {self.iteration} started ({len(self.messages)} messages)")

    @property
    def guard_armed(self) -> bool:
        """Chunks are held while no job tool succeeded and no tool call is under way."""
        return not self.domain_tool_succeeded and not self.tool_fragments

    @property
    def round_text(self) -> str:
        return "".join(self.assistant_content)
