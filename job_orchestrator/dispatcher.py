"""Routes tool calls from the model to the remote services."""

import json
import logging
from typing import Any, Awaitable, Callable, Dict

from pydantic import BaseModel, ValidationError

from .amap_client import AmapClient
from .errors import MalformedToolArguments, ToolExecutionError, TransportError
from .guard import (
    PARSE_IMAGE,
    PARSE_PDF,
    QUERY_JOBS_BY_AREA,
    QUERY_JOBS_BY_LOCATION,
    QUERY_LOCATION,
    QUERY_POLICY,
)
from .job_client import JobClient
from .ocr_client import OCRClient
from .policy_client import PolicyChatData, PolicyClient
from .tools import (
    ARGUMENT_MODELS,
    JobQueryArgs,
    LocationArgs,
    ParseImageArgs,
    ParsePdfArgs,
    PolicyArgs,
)

logger = logging.getLogger(__name__)


def parse_arguments(name: str, arguments: str) -> Dict[str, Any]:
    """Decode a tool's argument string, which must be a JSON object."""
    try:
        parsed = json.loads(arguments)
    except json.JSONDecodeError as e:
        raise MalformedToolArguments(f"arguments for {name} are not valid JSON: {e}") from e
    if not isinstance(parsed, dict):
        raise MalformedToolArguments(f"arguments for {name} must be a JSON object")
    return parsed


def _validation_summary(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(p) for p in item.get("loc", ())) or "arguments"
        parts.append(f"{location}: {item.get('msg', 'invalid')}")
    return "; ".join(parts)


class ToolDispatcher:
    """
    Executes tools by name.

    Handles:
    - Argument decoding (non-object arguments end the turn)
    - Per-tool argument validation (failures are reported back to the model)
    - Mapping remote failures to ToolExecutionError
    """

    def __init__(self, amap: AmapClient, jobs: JobClient, ocr: OCRClient, policy: PolicyClient):
        self.amap = amap
        self.jobs = jobs
        self.ocr = ocr
        self.policy = policy
        self._handlers: Dict[str, Callable[[Any], Awaitable[str]]] = {
            QUERY_LOCATION: self._query_location,
            QUERY_JOBS_BY_AREA: self._query_jobs,
            QUERY_JOBS_BY_LOCATION: self._query_jobs,
            PARSE_PDF: self._parse_pdf,
            PARSE_IMAGE: self._parse_image,
            QUERY_POLICY: self._query_policy,
        }

    async def execute(self, name: str, arguments: str) -> str:
        """Run tool ``name`` and return its result text."""
        raw = parse_arguments(name, arguments)

        model = ARGUMENT_MODELS.get(name)
        handler = self._handlers.get(name)
        if model is None or handler is None:
            raise ToolExecutionError(f"unknown tool: {name}")

        try:
            params: BaseModel = model.model_validate(raw)
        except ValidationError as e:
            raise ToolExecutionError(f"invalid arguments for {name}: {_validation_summary(e)}") from e

        try:
            return await handler(params)
        except TransportError as e:
            logger.error(f"Tool {name} failed: {e.message}")
            raise ToolExecutionError(e.message) from e

    # ========================================================================
    # Handlers
    # ========================================================================

    async def _query_location(self, params: LocationArgs) -> str:
        coordinates = await self.amap.locate(params.keywords)
        if coordinates is None:
            raise ToolExecutionError(f"place not found: {params.keywords}")

        latitude, longitude = coordinates
        return json.dumps({
            "keywords": params.keywords,
            "latitude": latitude,
            "longitude": longitude,
            "message": f"Coordinates of {params.keywords}: latitude {latitude}, longitude {longitude}",
        }, ensure_ascii=False)

    async def _query_jobs(self, params: JobQueryArgs) -> str:
        result = await self.jobs.search(params.query_params())
        logger.info(f"Job search returned {len(result.jobListings)} listings")
        return result.model_dump_json(indent=2, exclude_none=True)

    async def _parse_pdf(self, params: ParsePdfArgs) -> str:
        return await self.ocr.parse_url(params.fileUrl)

    async def _parse_image(self, params: ParseImageArgs) -> str:
        return await self.ocr.parse_url(params.imageUrl)

    async def _query_policy(self, params: PolicyArgs) -> str:
        reply = await self.policy.chat(PolicyChatData(
            chatId=params.chatId,
            conversationId=params.conversationId,
            realName=params.realName,
            message=params.message,
            aac001=params.aac001 or "",
            aac147=params.aac147 or "",
            aac003=params.aac003 or "",
        ))
        return json.dumps({
            "message": reply.message,
            "chatId": reply.chatId,
            "conversationId": reply.conversationId,
        }, ensure_ascii=False)
