"""
Hallucination guard for job listings.

Job records shown to the user must come from the job tools. Text that reads
like a job record before any job tool succeeded is treated as fabricated:
the engine discards it, tells the user once, and forces the next round to
call the job search tool.
"""

import logging
import re
from typing import Any, Dict, Sequence

from .models import ChatMessage

logger = logging.getLogger(__name__)


QUERY_LOCATION = "queryLocation"
QUERY_JOBS_BY_AREA = "queryJobsByArea"
QUERY_JOBS_BY_LOCATION = "queryJobsByLocation"
PARSE_PDF = "parsePDF"
PARSE_IMAGE = "parseImage"
QUERY_POLICY = "queryPolicy"

JOB_TOOLS = frozenset({QUERY_JOBS_BY_AREA, QUERY_JOBS_BY_LOCATION})


# Each entry is one pattern; Chinese and English forms of the same field
# count once.
FABRICATION_PATTERNS = [
    re.compile(r"(?:岗位名称|job\s*title)\s*[：:]\s*\S+", re.IGNORECASE),
    re.compile(r"(?:公司名称|company\s*name)\s*[：:]\s*\S+", re.IGNORECASE),
    re.compile(r"(?:薪资范围|salary\s*range)\s*[：:]\s*\d+", re.IGNORECASE),
    re.compile(r"(?:工作地点|work\s*location)\s*[：:]\s*\S+", re.IGNORECASE),
    re.compile(r"(?:学历要求|education\s*requirements?)\s*[：:]\s*\S+", re.IGNORECASE),
    re.compile(r"(?:经验要求|experience\s*requirements?)\s*[：:]\s*\S+", re.IGNORECASE),
    re.compile(r"\d+\s*[-~到至]\s*\d+\s*(?:元\s*[/／每]\s*月|yuan\s*(?:/|per)\s*month)", re.IGNORECASE),
    re.compile(r"\d+[kK]\s*[-~到至]\s*\d+[kK]"),
    re.compile(r"(?:推荐|适合)[^。]*(?:岗位|职位|工作)[：:]\s*\d+[.、]"),
    re.compile(r"recommended\s+(?:positions|jobs)\s*:", re.IGNORECASE),
    re.compile(r"以下是[^。]*(?:岗位|职位|工作)"),
    re.compile(r"here\s+are\s+[^.\n]*\b(?:jobs|positions|openings)\b", re.IGNORECASE),
    re.compile(r"为您(?:推荐|找到)[^。]*(?:岗位|职位|工作)"),
]

FABRICATION_THRESHOLD = 2


JOB_INTENT_KEYWORDS = [
    "岗位", "工作", "招聘", "职位", "就业", "求职", "找工作", "应聘",
    "薪资", "薪酬", "工资", "待遇", "月薪", "年薪",
    "附近的工作", "附近的岗位", "附近招聘", "适合我的", "匹配的岗位",
    "开发工程师", "产品经理", "设计师", "运营", "销售", "会计", "财务",
    "前端", "后端", "全栈", "测试", "运维",
    "job", "position", "vacanc", "hiring", "recruit", "salary", "career",
    "engineer", "developer", "java", "python",
]

# Marker the content resolver puts in front of OCR text that is not a resume
NON_RESUME_IMAGE_HINT = "[Uploaded image content (not a resume)]"


APOLOGY_NOTICE = (
    "Sorry, I need to look up real job data before recommending anything. "
    "Searching for matching positions now..."
)

CORRECTIVE_INSTRUCTION = (
    "Call the job search tool to get real data. Do not make up job information."
)


def count_fabrication_patterns(text: str) -> int:
    """Number of distinct fabrication patterns found in ``text``."""
    if not text:
        return 0
    return sum(1 for pattern in FABRICATION_PATTERNS if pattern.search(text))


def looks_fabricated(text: str) -> bool:
    matches = count_fabrication_patterns(text)
    if matches >= FABRICATION_THRESHOLD:
        logger.warning(f"Fabricated job output detected ({matches} patterns matched)")
        return True
    return False


def detect_job_intent(messages: Sequence[ChatMessage]) -> bool:
    """Whether the latest user message asks about jobs."""
    last_user = ""
    for message in reversed(messages):
        if message.role == "user":
            last_user = message.text()
            break

    if not last_user:
        return False

    if NON_RESUME_IMAGE_HINT in last_user:
        logger.info("Non-resume image in last user message, not treating as job intent")
        return False

    lowered = last_user.lower()
    for keyword in JOB_INTENT_KEYWORDS:
        if keyword.lower() in lowered:
            logger.info(f"Job intent detected (keyword: {keyword})")
            return True
    return False


def forced_tool_choice() -> Dict[str, Any]:
    """Tool choice that makes the backend call the area job search."""
    return {"type": "function", "function": {"name": QUERY_JOBS_BY_AREA}}


def corrective_message() -> ChatMessage:
    return ChatMessage(role="user", content=CORRECTIVE_INSTRUCTION)
