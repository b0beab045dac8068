"""
Orchestration loop.

Drives one conversation turn against the LLM backend:
- each round is one backend call
- tool calls are reassembled, executed sequentially and fed back
- reasoning spans are stripped from everything the client sees
- job-shaped text produced before any job tool succeeded is intercepted

A turn ends when the model answers without tool calls, when a job search
result has been streamed to the client, or when the round limit is hit.
"""

import asyncio
import json
import logging
import time
import uuid
from typing import AsyncIterator, Awaitable, Callable, Optional, Tuple

from pydantic import ValidationError

from .config import Config, config
from .content_filter import filter_reasoning
from .content_resolver import ContentResolver
from .dispatcher import ToolDispatcher
from .errors import IterationLimitExceeded, ProtocolError, ToolExecutionError, TransportError
from .guard import (
    APOLOGY_NOTICE,
    JOB_TOOLS,
    corrective_message,
    detect_job_intent,
    forced_tool_choice,
    looks_fabricated,
)
from .llm_client import LLMClient
from .models import (
    ChatCompletionChunk,
    ChatCompletionRequest,
    ChatCompletionResponse,
    ChatMessage,
    Choice,
    ChunkChoice,
    Delta,
    JobResult,
    LLMRequest,
    ToolCall,
)
from .state import OrchestrationState
from .tool_calls import index_by_position, merge_tool_calls
from .tools import build_system_prompt, build_tool_definitions

logger = logging.getLogger(__name__)

IsDisconnected = Callable[[], Awaitable[bool]]

BRIDGE = "\n\n"
TOOL_FINISHED = "tool finished"
NO_MATCHING_POSITIONS = "No matching positions were found. Try adjusting the search conditions.\n"


def content_chunk(content: Optional[str], finish_reason: Optional[str] = None) -> ChatCompletionChunk:
    """Internal chunk; the relay stamps id, model and role."""
    return ChatCompletionChunk(
        choices=[ChunkChoice(delta=Delta(content=content), finish_reason=finish_reason)],
    )


class ChatEngine:
    """
    Runs conversation turns in buffered or streaming mode.

    All per-turn state lives in an OrchestrationState created by the call,
    so one engine serves any number of concurrent requests.
    """

    def __init__(
        self,
        llm: LLMClient,
        dispatcher: ToolDispatcher,
        resolver: ContentResolver,
        cfg: Config = config,
    ):
        self.llm = llm
        self.dispatcher = dispatcher
        self.resolver = resolver
        self.config = cfg
        self.tools = build_tool_definitions(cfg)
        self.system_prompt = build_system_prompt(cfg)

    @property
    def max_iterations(self) -> int:
        return self.config.max_iterations

    # ========================================================================
    # Turn setup
    # ========================================================================

    async def new_state(self, request: ChatCompletionRequest) -> OrchestrationState:
        messages = await self.resolver.resolve(request.messages)
        state = OrchestrationState(
            messages=[ChatMessage(role="system", content=self.system_prompt)] + messages,
        )
        state.job_intent = detect_job_intent(messages)
        logger.info(f"Turn started: messages={len(messages)}, job_intent={state.job_intent}")
        return state

    def _llm_request(self, state: OrchestrationState, request: ChatCompletionRequest, stream: bool) -> LLMRequest:
        return LLMRequest(
            model=self.config.llm_model,
            messages=list(state.messages),
            tools=self.tools,
            tool_choice=state.tool_choice,
            temperature=request.temperature,
            top_p=request.top_p,
            max_tokens=request.max_tokens,
            stream=stream,
        )

    async def _cancelled(self, is_disconnected: Optional[IsDisconnected]) -> bool:
        if is_disconnected is not None and await is_disconnected():
            logger.info("Client disconnected, abandoning turn")
            return True
        return False

    # ========================================================================
    # Shared round handling
    # ========================================================================

    def _intercept(self, state: OrchestrationState) -> Optional[str]:
        """
        Apply the correction policy for fabricated job output.

        Returns the apology notice the first time in a turn, None after.
        """
        logger.warning(f"Intercepted fabricated job output in round {state.iteration}, "
                       f"forcing job search")
        state.messages.append(corrective_message())
        state.tool_choice = forced_tool_choice()
        if state.notice_sent:
            return None
        state.notice_sent = True
        return APOLOGY_NOTICE

    def _record_tool_calls(self, state: OrchestrationState, content: str, tool_calls):
        names = [c.function.name for c in tool_calls]
        logger.info(f"Round {state.iteration}: model requested tools {names}")
        state.messages.append(ChatMessage(
            role="assistant",
            content=content or None,
            tool_calls=[c.model_copy(update={"index": None}) for c in tool_calls],
        ))

    async def _execute(self, state: OrchestrationState, call: ToolCall) -> Tuple[str, bool]:
        """Run one tool call. Returns the result text and whether it succeeded."""
        name = call.function.name
        logger.info(f"Executing tool {name} (id={call.id})")

        try:
            result = await self.dispatcher.execute(name, call.function.arguments)
        except ToolExecutionError as e:
            logger.warning(f"Tool {name} failed: {e.message}")
            return f"tool call failed: {e.message}", False

        if name in JOB_TOOLS:
            state.domain_tool_succeeded = True
        logger.info(f"Tool {name} succeeded ({len(result)} chars)")
        return result, True

    def _append_tool_result(self, state: OrchestrationState, call: ToolCall, result: str):
        state.messages.append(ChatMessage(
            role="tool",
            content=result or TOOL_FINISHED,
            tool_call_id=call.id,
        ))

    def _after_tools(self, state: OrchestrationState, tool_calls):
        # A forced job search is only forced once
        if any(c.function.name in JOB_TOOLS for c in tool_calls):
            state.tool_choice = "auto"

    # ========================================================================
    # Buffered mode
    # ========================================================================

    async def complete(
        self,
        request: ChatCompletionRequest,
        is_disconnected: Optional[IsDisconnected] = None,
    ) -> ChatCompletionResponse:
        """Run a turn and return the final answer as one response."""
        state = await self.new_state(request)

        while state.iteration < self.max_iterations:
            if await self._cancelled(is_disconnected):
                return self._response(state, "", "stop")

            state.begin_round()
            response = await self.llm.complete(self._llm_request(state, request, stream=False))
            if not response.choices:
                raise TransportError("LLM response carried no choices")

            choice = response.choices[0]
            message = choice.message
            tool_calls = merge_tool_calls(index_by_position(message.tool_calls or []))

            if not tool_calls:
                text = filter_reasoning(message.text())
                if state.guard_armed and looks_fabricated(text):
                    self._intercept(state)
                    continue
                logger.info(f"Turn complete after {state.iteration} rounds")
                return self._response(state, text, choice.finish_reason or "stop", response.usage)

            self._record_tool_calls(state, message.text(), tool_calls)
            for call in tool_calls:
                if await self._cancelled(is_disconnected):
                    return self._response(state, "", "stop")
                result, _ = await self._execute(state, call)
                self._append_tool_result(state, call, result)
            self._after_tools(state, tool_calls)

        raise IterationLimitExceeded(f"exceeded the maximum of {self.max_iterations} tool rounds")

    def _response(self, state: OrchestrationState, text: str, finish_reason: str, usage=None) -> ChatCompletionResponse:
        if state.notice_sent:
            text = f"{APOLOGY_NOTICE}\n\n{text}" if text else APOLOGY_NOTICE
        return ChatCompletionResponse(
            id=f"chatcmpl-{uuid.uuid4().hex[:24]}",
            created=int(time.time()),
            model=self.config.exposed_model,
            choices=[Choice(
                message=ChatMessage(role="assistant", content=text),
                finish_reason=finish_reason,
            )],
            usage=usage,
        )

    # ========================================================================
    # Streaming mode
    # ========================================================================

    async def stream(
        self,
        request: ChatCompletionRequest,
        is_disconnected: Optional[IsDisconnected] = None,
    ) -> AsyncIterator[ChatCompletionChunk]:
        """
        Run a turn, yielding client-visible chunks as they become available.

        Errors end the turn by propagating out of the generator; a client
        disconnect ends it quietly.
        """
        state = await self.new_state(request)

        while state.iteration < self.max_iterations:
            if await self._cancelled(is_disconnected):
                return

            state.begin_round()
            async for chunk in self.llm.stream(self._llm_request(state, request, stream=True)):
                if not chunk.choices:
                    continue

                choice = chunk.choices[0]
                delta = choice.delta
                if delta.content:
                    state.assistant_content.append(delta.content)
                if delta.tool_calls:
                    if not state.tool_fragments and state.pending_chunks:
                        # Guard stands down for the round; held text goes out first
                        for held in self._release(state):
                            yield held
                    state.tool_fragments.extend(delta.tool_calls)
                if choice.finish_reason:
                    state.finish_reason = choice.finish_reason

                if delta.tool_calls or choice.finish_reason == "tool_calls":
                    continue

                if state.guard_armed:
                    state.pending_chunks.append(chunk)
                    continue

                visible = self._filtered(state, chunk)
                if visible is not None:
                    yield visible

            logger.debug(f"Round {state.iteration} finished: finish_reason={state.finish_reason}, "
                         f"fragments={len(state.tool_fragments)}")

            tool_calls = merge_tool_calls(state.tool_fragments)

            if not tool_calls:
                if state.pending_chunks:
                    held_text = filter_reasoning("".join(
                        c.choices[0].delta.content or "" for c in state.pending_chunks
                    ))
                    if looks_fabricated(held_text):
                        logger.warning(f"Discarding {len(state.pending_chunks)} held chunks")
                        state.pending_chunks = []
                        notice = self._intercept(state)
                        if notice is not None:
                            yield content_chunk(notice)
                        continue
                    for held in self._release(state):
                        yield held
                logger.info(f"Turn complete after {state.iteration} rounds")
                return

            self._record_tool_calls(state, filter_reasoning(state.round_text), tool_calls)
            for call in tool_calls:
                if await self._cancelled(is_disconnected):
                    return
                result, succeeded = await self._execute(state, call)
                if succeeded and call.function.name in JOB_TOOLS:
                    async for listing in self._listing_chunks(result):
                        yield listing
                    logger.info("Job listings delivered, turn complete")
                    return
                self._append_tool_result(state, call, result)
            self._after_tools(state, tool_calls)

            yield content_chunk(BRIDGE)

        raise IterationLimitExceeded(f"exceeded the maximum of {self.max_iterations} tool rounds")

    def _filtered(self, state: OrchestrationState, chunk: ChatCompletionChunk) -> Optional[ChatCompletionChunk]:
        """Pass a chunk through the span filter; None when nothing is left to send."""
        choice = chunk.choices[0]
        visible = state.span_filter.feed(choice.delta.content) if choice.delta.content else ""
        if not visible and not choice.finish_reason:
            return None
        return content_chunk(visible or None, choice.finish_reason)

    def _release(self, state: OrchestrationState):
        held, state.pending_chunks = state.pending_chunks, []
        for chunk in held:
            visible = self._filtered(state, chunk)
            if visible is not None:
                yield visible

    async def _listing_chunks(self, result_text: str) -> AsyncIterator[ChatCompletionChunk]:
        """
        Stream a job search result one listing at a time.

        Emits a bridge, an intro line, one fenced ``job-json`` block per
        listing spaced by the configured interval, and a final stop chunk.
        """
        try:
            result = JobResult.model_validate_json(result_text)
        except ValidationError as e:
            raise ProtocolError(f"undecodable job search result: {e}") from e

        yield content_chunk(BRIDGE)

        listings = result.jobListings
        if not listings:
            yield content_chunk(NO_MATCHING_POSITIONS)
        else:
            yield content_chunk(f"Found {len(listings)} matching positions:\n\n")
            for i, job in enumerate(listings):
                body = json.dumps(job.model_dump(exclude_none=True), ensure_ascii=False, indent=2)
                yield content_chunk(f"``` job-json\n{body}\n```\n\n")
                if i < len(listings) - 1 and self.config.listing_interval > 0:
                    await asyncio.sleep(self.config.listing_interval)

        yield content_chunk(None, "stop")
