"""Server-sent events relay for streamed turns."""

import asyncio
import json
import logging
import time
import uuid
from typing import AsyncGenerator, AsyncIterator, Optional

from .errors import GatewayError
from .models import ChatCompletionChunk

logger = logging.getLogger(__name__)

DONE_LINE = "data: [DONE]\n\n"


class StreamRelay:
    """
    Encodes engine chunks as OpenAI-compatible SSE lines.

    Every chunk of a turn carries the same completion id, creation time and
    published model name. Only the first relayed chunk carries the
    assistant role.
    """

    def __init__(self, model: str, completion_id: Optional[str] = None, created: Optional[int] = None):
        self.model = model
        self.completion_id = completion_id or f"chatcmpl-{uuid.uuid4().hex[:24]}"
        self.created = created or int(time.time())
        self.first_sent = False

    def encode(self, chunk: ChatCompletionChunk) -> Optional[str]:
        """SSE line for ``chunk``, or None when the chunk must not reach the client."""
        if not chunk.choices:
            return None

        choice = chunk.choices[0]
        if choice.finish_reason == "tool_calls":
            return None
        if choice.delta.tool_calls and not choice.delta.content:
            return None

        return self._line(choice.delta.content, choice.finish_reason)

    def error(self, message: str) -> str:
        return self._line(f"\n\nError: {message}", "error")

    def _line(self, content: Optional[str], finish_reason: Optional[str]) -> str:
        delta = {}
        if not self.first_sent:
            delta["role"] = "assistant"
            self.first_sent = True
        if content is not None:
            delta["content"] = content

        chunk = {
            "id": self.completion_id,
            "object": "chat.completion.chunk",
            "created": self.created,
            "model": self.model,
            "choices": [{
                "index": 0,
                "delta": delta,
                "finish_reason": finish_reason,
            }],
        }
        return f"data: {json.dumps(chunk, ensure_ascii=False)}\n\n"


async def relay_stream(chunks: AsyncGenerator[ChatCompletionChunk, None], relay: StreamRelay) -> AsyncIterator[str]:
    """
    Stream a turn as SSE lines, ending with ``[DONE]``.

    A turn-ending error becomes one error chunk. The chunk generator is
    closed on every exit path, including client disconnects.
    """
    try:
        async for chunk in chunks:
            line = relay.encode(chunk)
            if line is not None:
                yield line
    except asyncio.CancelledError:
        logger.info(f"Stream {relay.completion_id} cancelled by client disconnect")
        raise
    except GatewayError as e:
        logger.error(f"Stream {relay.completion_id} failed: {e.message}")
        yield relay.error(e.message)
    except Exception as e:
        logger.exception(f"Unexpected error in stream {relay.completion_id}: {e}")
        yield relay.error("internal error")
    finally:
        await chunks.aclose()

    yield DONE_LINE
