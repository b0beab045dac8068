"""Tool definitions, tool argument models, and the system prompt."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, field_validator, model_validator

from .config import Config
from .guard import (
    PARSE_IMAGE,
    PARSE_PDF,
    QUERY_JOBS_BY_AREA,
    QUERY_JOBS_BY_LOCATION,
    QUERY_LOCATION,
    QUERY_POLICY,
)


# ============================================================================
# Tool Argument Models
# ============================================================================

class LocationArgs(BaseModel):
    keywords: str


class JobQueryArgs(BaseModel):
    """Filters shared by both job searches. Codes are sent as strings."""
    jobTitle: str = ""
    current: int = 1
    pageSize: int = 10
    jobLocationAreaCode: Optional[str] = None
    order: Optional[str] = None
    minSalary: Optional[str] = None
    maxSalary: Optional[str] = None
    experience: Optional[str] = None
    education: Optional[str] = None
    companyNature: Optional[str] = None

    # Models often send numbers for the string filters
    @field_validator(
        "jobLocationAreaCode", "order", "minSalary", "maxSalary",
        "experience", "education", "companyNature",
        mode="before",
    )
    @classmethod
    def number_to_str(cls, value):
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    def query_params(self) -> Dict[str, Any]:
        """Query string for the job board; unset and empty filters are omitted."""
        return {k: v for k, v in self.model_dump().items() if v is not None and v != ""}


class JobsByAreaArgs(JobQueryArgs):
    pass


class JobsByLocationArgs(JobQueryArgs):
    latitude: str
    longitude: str
    radius: str = "10"

    @field_validator("latitude", "longitude", "radius", mode="before")
    @classmethod
    def coordinate_to_str(cls, value):
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value


class ParsePdfArgs(BaseModel):
    fileUrl: str


class ParseImageArgs(BaseModel):
    imageUrl: str


class PolicyArgs(BaseModel):
    """Policy consultation. Real-name mode needs all three identity fields."""
    message: str
    chatId: str = ""
    conversationId: str = ""
    realName: bool = False
    aac001: Optional[str] = None
    aac147: Optional[str] = None
    aac003: Optional[str] = None

    @model_validator(mode="after")
    def identity_for_real_name(self):
        if self.realName and not (self.aac001 and self.aac147 and self.aac003):
            raise ValueError(
                "real-name consultation requires aac001 (person id), "
                "aac147 (id card number) and aac003 (name)"
            )
        return self


ARGUMENT_MODELS = {
    QUERY_LOCATION: LocationArgs,
    QUERY_JOBS_BY_AREA: JobsByAreaArgs,
    QUERY_JOBS_BY_LOCATION: JobsByLocationArgs,
    PARSE_PDF: ParsePdfArgs,
    PARSE_IMAGE: ParseImageArgs,
    QUERY_POLICY: PolicyArgs,
}


# ============================================================================
# Tool Definitions (OpenAI function-tool format)
# ============================================================================

_EXPERIENCE_CODES = (
    "Experience code: 0 any, 1 intern, 2 new graduate, 3 under 1 year, "
    "4 1-3 years, 5 3-5 years, 6 5-10 years, 7 over 10 years"
)
_EDUCATION_CODES = (
    "Education code: -1 any, 0 junior high or below, 1 technical secondary, "
    "2 high school, 3 junior college, 4 bachelor, 5 master, 6 doctorate, "
    "7 MBA/EMBA, 8 overseas bachelor, 9 overseas master, 10 overseas doctorate"
)
_COMPANY_NATURE_CODES = (
    "Company type code: 1 private, 2 joint-stock, 3 state-owned, "
    "4 foreign or HK/Macao/Taiwan invested, 5 hospital"
)


def _function(name: str, description: str, properties: Dict[str, Any], required: List[str]) -> Dict[str, Any]:
    return {
        "type": "function",
        "function": {
            "name": name,
            "description": description,
            "parameters": {
                "type": "object",
                "properties": properties,
                "required": required,
            },
        },
    }


def _job_filter_properties() -> Dict[str, Any]:
    return {
        "jobTitle": {"type": "string", "description": "Job title keyword, e.g. Java developer, product manager"},
        "current": {"type": "integer", "description": "Page number, defaults to 1", "default": 1},
        "pageSize": {"type": "integer", "description": "Jobs per page, defaults to 10", "default": 10},
        "order": {"type": "string", "description": "Sort order: 0 recommended, 1 hottest, 2 newest; defaults to 0"},
        "minSalary": {"type": "string", "description": "Minimum salary in yuan/month"},
        "maxSalary": {"type": "string", "description": "Maximum salary in yuan/month"},
        "experience": {"type": "string", "description": _EXPERIENCE_CODES},
        "education": {"type": "string", "description": _EDUCATION_CODES},
        "companyNature": {"type": "string", "description": _COMPANY_NATURE_CODES},
    }


def build_tool_definitions(cfg: Config) -> List[Dict[str, Any]]:
    """Build the six tool definitions for the configured city."""
    city = cfg.city_name

    by_area = _job_filter_properties()
    by_area["jobLocationAreaCode"] = {
        "type": "string",
        "description": f"Area code: {cfg.area_codes_description()}",
    }

    by_location = _job_filter_properties()
    by_location.update({
        "latitude": {"type": "string", "description": "Latitude, from queryLocation"},
        "longitude": {"type": "string", "description": "Longitude, from queryLocation"},
        "radius": {
            "type": "string",
            "description": "Search radius in km, at most 50, 5-10 recommended",
            "default": "10",
        },
    })

    return [
        _function(
            QUERY_LOCATION,
            f"Look up the coordinates of a place in {city}, for location-based job searches.",
            {"keywords": {"type": "string", "description": f"Place name, e.g. {cfg.landmarks_example()}"}},
            ["keywords"],
        ),
        _function(
            QUERY_JOBS_BY_AREA,
            f"[MUST CALL] Search {city} jobs by area code. Any question about jobs, "
            "hiring or job hunting must be answered with data from this tool. "
            "Never output job information without calling it.",
            by_area,
            ["jobTitle", "current", "pageSize"],
        ),
        _function(
            QUERY_JOBS_BY_LOCATION,
            f"[MUST CALL] Search {city} jobs near a coordinate within a radius. "
            "Call queryLocation first to get the coordinate. "
            "Never output job information without calling it.",
            by_location,
            ["jobTitle", "current", "pageSize", "latitude", "longitude", "radius"],
        ),
        _function(
            PARSE_PDF,
            "Extract the text of a PDF file, suited to resumes and other complex layouts.",
            {"fileUrl": {"type": "string", "description": "URL of the PDF file"}},
            ["fileUrl"],
        ),
        _function(
            PARSE_IMAGE,
            "Recognize the text in an image such as a resume screenshot or a certificate photo.",
            {"imageUrl": {"type": "string", "description": "URL of the image"}},
            ["imageUrl"],
        ),
        _function(
            QUERY_POLICY,
            f"Answer {city} policy questions on employment, entrepreneurship, "
            "social and medical insurance, and talent programs.",
            {
                "message": {
                    "type": "string",
                    "description": f"The policy question, e.g. {city} graduate employment subsidies",
                },
                "chatId": {
                    "type": "string",
                    "description": "Conversation id for follow-ups; omit on the first call",
                },
                "conversationId": {
                    "type": "string",
                    "description": "Serial number for follow-ups; omit on the first call",
                },
                "realName": {
                    "type": "boolean",
                    "description": "Real-name consultation; requires aac001, aac147 and aac003",
                    "default": False,
                },
                "aac001": {"type": "string", "description": "Personal id, required when realName is true"},
                "aac147": {"type": "string", "description": "ID card number, required when realName is true"},
                "aac003": {"type": "string", "description": "Full name, required when realName is true"},
            },
            ["message"],
        ),
    ]


# ============================================================================
# System Prompt
# ============================================================================

SYSTEM_PROMPT_TEMPLATE = """You are the {system_name}. You handle what the user sends and call tools to provide job information.

## Core rule: never invent jobs
1. Job information (titles, companies, salaries, locations, education or experience requirements) may only come from queryJobsByArea or queryJobsByLocation.
2. Do not output, guess or give examples of jobs before one of those tools has returned.
3. Job results are formatted and shown by the system. Add only a short lead-in sentence.
4. If a job search returns nothing, say so and suggest adjusting the conditions.

## Working with tools
1. Work out what information the user needs, then plan the shortest chain of tool calls.
2. Call prerequisite tools first (queryLocation before queryJobsByLocation).
3. Retry only an empty job search, with adjusted keywords, radius or filters.
4. Stop as soon as you have enough information to answer.
5. Multi-turn tools such as queryPolicy take the chatId and conversationId returned by the previous call.

## Output
1. Every fact shown must come from a tool result.
2. Stay concise and neutral. Do not mention tools, APIs or function calls to the user.
3. Never say a query failed after showing its data.
4. General questions (for example interview tips) can be answered directly.

## City reference
- {city_name} area codes: {area_codes}
- Common abbreviations: {abbreviations}. Expand them before calling tools.
"""


def build_system_prompt(cfg: Config) -> str:
    """System prompt for the configured city."""
    return SYSTEM_PROMPT_TEMPLATE.format(
        system_name=cfg.system_name,
        city_name=cfg.city_name,
        area_codes=cfg.area_codes_description(),
        abbreviations=cfg.abbreviations_description(),
    )
