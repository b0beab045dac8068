"""Data models for the gateway."""

from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator


# ============================================================================
# OpenAI-Compatible Request/Response Models
# ============================================================================

class ImageURL(BaseModel):
    url: str
    detail: Optional[str] = None


class ContentPart(BaseModel):
    """One part of a mixed-content message (OpenAI vision format)."""
    type: Literal["text", "image_url"]
    text: Optional[str] = None
    image_url: Optional[ImageURL] = None


class FunctionCall(BaseModel):
    name: str = ""
    arguments: str = ""

    @field_validator("name", "arguments", mode="before")
    @classmethod
    def none_to_empty(cls, value):
        return "" if value is None else value


class ToolCall(BaseModel):
    """Tool call, complete or (when streamed) a fragment tagged by index."""
    index: Optional[int] = None
    id: str = ""
    type: str = ""
    function: FunctionCall = Field(default_factory=FunctionCall)

    @field_validator("id", "type", mode="before")
    @classmethod
    def none_to_empty(cls, value):
        return "" if value is None else value

    @field_validator("function", mode="before")
    @classmethod
    def default_function(cls, value):
        return {} if value is None else value


# Plain text, mixed text/image parts, or no content (tool-call-only messages)
MessageContent = Union[str, List[ContentPart], None]


class ChatMessage(BaseModel):
    """OpenAI chat message format."""
    role: Literal["system", "user", "assistant", "tool"]
    content: MessageContent = None
    name: Optional[str] = None
    tool_calls: Optional[List[ToolCall]] = None
    tool_call_id: Optional[str] = None

    def text(self) -> str:
        """Text view of the content; image parts contribute nothing."""
        if self.content is None:
            return ""
        if isinstance(self.content, str):
            return self.content
        return "\n".join(p.text for p in self.content if p.type == "text" and p.text)


class ChatCompletionRequest(BaseModel):
    """OpenAI chat completion request."""
    model: str = ""
    messages: List[ChatMessage] = Field(default_factory=list)
    stream: bool = False
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    max_tokens: Optional[int] = None


class Delta(BaseModel):
    role: Optional[str] = None
    content: Optional[str] = None
    tool_calls: Optional[List[ToolCall]] = None


class ChunkChoice(BaseModel):
    index: int = 0
    delta: Delta = Field(default_factory=Delta)
    finish_reason: Optional[str] = None


class ChatCompletionChunk(BaseModel):
    """Streamed completion chunk."""
    id: str = ""
    object: str = "chat.completion.chunk"
    created: int = 0
    model: str = ""
    choices: List[ChunkChoice] = Field(default_factory=list)


class Choice(BaseModel):
    index: int = 0
    message: ChatMessage = Field(default_factory=lambda: ChatMessage(role="assistant"))
    finish_reason: Optional[str] = None


class Usage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class ChatCompletionResponse(BaseModel):
    """Buffered completion response."""
    id: str = ""
    object: str = "chat.completion"
    created: int = 0
    model: str = ""
    choices: List[Choice] = Field(default_factory=list)
    usage: Optional[Usage] = None


class LLMRequest(BaseModel):
    """Request sent to the backend model."""
    model: str
    messages: List[ChatMessage]
    tools: Optional[List[Dict[str, Any]]] = None
    tool_choice: Optional[Union[str, Dict[str, Any]]] = None
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    max_tokens: Optional[int] = None
    stream: bool = False

    def payload(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


class ModelInfo(BaseModel):
    """OpenAI model info."""
    id: str
    object: str = "model"
    created: int
    owned_by: str = "job-orchestrator"


# ============================================================================
# Job Search Models
# ============================================================================

EDUCATION_LABELS = {
    "-1": "Any education",
    "0": "Junior high or below",
    "1": "Technical secondary",
    "2": "High school",
    "3": "Junior college",
    "4": "Bachelor",
    "5": "Master",
    "6": "Doctorate",
    "7": "MBA/EMBA",
    "8": "Overseas bachelor",
    "9": "Overseas master",
    "10": "Overseas doctorate",
}

EXPERIENCE_LABELS = {
    "0": "Any experience",
    "1": "Intern",
    "2": "New graduate",
    "3": "Under 1 year",
    "4": "1-3 years",
    "5": "3-5 years",
    "6": "5-10 years",
    "7": "Over 10 years",
}

COMPANY_NATURE_LABELS = {
    "1": "Private company",
    "2": "Joint-stock company",
    "3": "State-owned enterprise",
    "4": "Foreign or HK/Macao/Taiwan invested",
    "5": "Hospital",
}


class JobListing(BaseModel):
    """Raw row from the job board."""
    jobTitle: str = ""
    companyName: str = ""
    minSalary: Optional[int] = None
    maxSalary: Optional[int] = None
    education: Optional[str] = None
    experience: Optional[str] = None
    appJobUrl: str = ""
    jobLocationAreaCode: Optional[int] = None

    @field_validator("education", "experience", mode="before")
    @classmethod
    def code_to_str(cls, value):
        return None if value is None else str(value)


class JobBoardResponse(BaseModel):
    code: int = 0
    msg: str = ""
    rows: List[JobListing] = Field(default_factory=list)
    data: Any = None


class FormattedJob(BaseModel):
    jobTitle: str
    companyName: str
    salary: str
    location: str
    education: str
    experience: str
    appJobUrl: str
    data: Any = None


class JobResult(BaseModel):
    """Result text of the job tools, serialized as JSON."""
    jobListings: List[FormattedJob] = Field(default_factory=list)
    data: Any = None
