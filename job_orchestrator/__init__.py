"""
Job Orchestrator

OpenAI-compatible chat gateway that drives tool-calling turns against an
LLM backend and keeps fabricated job listings away from users.

Components:
- engine: Orchestration loop (buffered and streaming turns)
- guard: Detection of job listings the model made up
- content_filter: Removal of <think> reasoning spans
- tool_calls: Reassembly of streamed tool-call fragments
- dispatcher / tools: Tool definitions and execution
- relay: SSE encoding of streamed turns
- api / main: FastAPI application
"""

__version__ = "1.0.0"
