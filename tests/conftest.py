"""Shared fakes for the test suite."""

import asyncio

import pytest

from job_orchestrator.config import Config
from job_orchestrator.engine import ChatEngine
from job_orchestrator.models import (
    ChatCompletionChunk,
    ChatCompletionRequest,
    ChatMessage,
    ChunkChoice,
    Delta,
    FormattedJob,
    FunctionCall,
    JobResult,
    ToolCall,
)


def make_config(**overrides) -> Config:
    overrides.setdefault("listing_interval", 0.0)
    overrides.setdefault("llm_model", "backend-model")
    overrides.setdefault("exposed_model", "qd-job-turbo")
    return Config(**overrides)


def text_chunk(text=None, finish_reason=None) -> ChatCompletionChunk:
    return ChatCompletionChunk(
        id="upstream",
        model="backend-model",
        choices=[ChunkChoice(delta=Delta(content=text), finish_reason=finish_reason)],
    )


def tool_chunk(index, name="", arguments="", call_id="") -> ChatCompletionChunk:
    call = ToolCall(
        index=index,
        id=call_id,
        type="function" if call_id else "",
        function=FunctionCall(name=name, arguments=arguments),
    )
    return ChatCompletionChunk(
        id="upstream",
        model="backend-model",
        choices=[ChunkChoice(delta=Delta(tool_calls=[call]))],
    )


def user_request(text: str, stream: bool = True) -> ChatCompletionRequest:
    return ChatCompletionRequest(
        model="qd-job-turbo",
        messages=[ChatMessage(role="user", content=text)],
        stream=stream,
    )


def contents(chunks) -> list:
    return [c.choices[0].delta.content for c in chunks if c.choices[0].delta.content]


def collect(agen) -> list:
    async def run():
        return [item async for item in agen]
    return asyncio.run(run())


class FakeLLM:
    """Scripted backend: each call consumes one round."""

    def __init__(self, rounds):
        self.rounds = list(rounds)
        self.requests = []

    async def complete(self, request):
        self.requests.append(request.model_copy(deep=True))
        outcome = self.rounds.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    async def stream(self, request):
        self.requests.append(request.model_copy(deep=True))
        outcome = self.rounds.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        for chunk in outcome:
            await asyncio.sleep(0)
            yield chunk


class FakeDispatcher:
    """Returns canned results per tool name; exceptions are raised."""

    def __init__(self, results=None):
        self.results = results or {}
        self.calls = []

    async def execute(self, name, arguments):
        self.calls.append((name, arguments))
        outcome = self.results.get(name, "")
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class PassthroughResolver:
    async def resolve(self, messages):
        return list(messages)


def make_engine(rounds, results=None, **config_overrides):
    llm = FakeLLM(rounds)
    dispatcher = FakeDispatcher(results)
    engine = ChatEngine(
        llm=llm,
        dispatcher=dispatcher,
        resolver=PassthroughResolver(),
        cfg=make_config(**config_overrides),
    )
    return engine, llm, dispatcher


@pytest.fixture
def job_result_json() -> str:
    data = {"total": 2, "searchId": "s-1"}
    result = JobResult(
        jobListings=[
            FormattedJob(
                jobTitle="Java Developer",
                companyName="Haier",
                salary="8000-12000 yuan/month",
                location="崂山区",
                education="Bachelor",
                experience="1-3 years",
                appJobUrl="https://jobs.example.com/1",
            ),
            FormattedJob(
                jobTitle="Backend Engineer",
                companyName="Hisense",
                salary="Negotiable",
                location="市南区",
                education="Any education",
                experience="Any experience",
                appJobUrl="https://jobs.example.com/2",
                data=data,
            ),
        ],
        data=data,
    )
    return result.model_dump_json(indent=2, exclude_none=True)
