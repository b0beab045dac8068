"""Gateway configuration."""

import json
import os
from dataclasses import dataclass, field
from typing import Dict, List

from dotenv import load_dotenv

load_dotenv()


DEFAULT_AREA_CODES = {
    "市南区": "0", "市北区": "1", "李沧区": "2", "崂山区": "3", "黄岛区": "4",
    "城阳区": "5", "即墨区": "6", "胶州市": "7", "平度市": "8", "莱西市": "9",
}
DEFAULT_LANDMARKS = ["五四广场", "青岛啤酒博物馆"]
DEFAULT_ABBREVIATIONS = {"青啤": "青岛啤酒"}


def _env_json(name: str, default):
    raw = os.getenv(name, "")
    if not raw:
        return default
    return json.loads(raw)


def _env_list(name: str, default: List[str]) -> List[str]:
    raw = os.getenv(name, "")
    items = [s.strip() for s in raw.split(",") if s.strip()]
    return items or list(default)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Config:
    """Configuration loaded from environment variables."""

    # Server
    host: str = field(default_factory=lambda: os.getenv("ORCH_HOST", "0.0.0.0"))
    port: int = field(default_factory=lambda: int(os.getenv("ORCH_PORT", "8080")))
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "info"))

    # Published model name; the backend never sees it
    exposed_model: str = field(default_factory=lambda: os.getenv("EXPOSED_MODEL", "qd-job-turbo"))

    # LLM backend (OpenAI-compatible)
    llm_base_url: str = field(default_factory=lambda: os.getenv("LLM_BASE_URL", "http://localhost:8000/v1"))
    llm_api_key: str = field(default_factory=lambda: os.getenv("LLM_API_KEY", ""))
    llm_model: str = field(default_factory=lambda: os.getenv("LLM_MODEL", "qwen3-32b"))
    llm_timeout: float = field(default_factory=lambda: float(os.getenv("LLM_TIMEOUT", "300")))
    llm_max_retries: int = field(default_factory=lambda: int(os.getenv("LLM_MAX_RETRIES", "3")))

    # Orchestration
    max_iterations: int = field(default_factory=lambda: int(os.getenv("MAX_TOOL_ITERATIONS", "10")))
    listing_interval: float = field(default_factory=lambda: float(os.getenv("LISTING_INTERVAL", "1.0")))

    # City
    city_name: str = field(default_factory=lambda: os.getenv("CITY_NAME", "青岛"))
    area_codes: Dict[str, str] = field(default_factory=lambda:
        _env_json("CITY_AREA_CODES", dict(DEFAULT_AREA_CODES)))
    landmarks: List[str] = field(default_factory=lambda: _env_list("CITY_LANDMARKS", DEFAULT_LANDMARKS))
    abbreviations: Dict[str, str] = field(default_factory=lambda:
        _env_json("CITY_ABBREVIATIONS", dict(DEFAULT_ABBREVIATIONS)))

    # Maps
    amap_base_url: str = field(default_factory=lambda: os.getenv("AMAP_BASE_URL", "https://restapi.amap.com/v3"))
    amap_api_key: str = field(default_factory=lambda: os.getenv("AMAP_API_KEY", ""))
    amap_timeout: float = field(default_factory=lambda: float(os.getenv("AMAP_TIMEOUT", "10")))

    # Job board
    job_api_url: str = field(default_factory=lambda: os.getenv("JOB_API_URL", "http://localhost:9000/jobs"))
    job_api_timeout: float = field(default_factory=lambda: float(os.getenv("JOB_API_TIMEOUT", "30")))

    # OCR
    ocr_base_url: str = field(default_factory=lambda: os.getenv("OCR_BASE_URL", "http://localhost:9001"))
    ocr_timeout: float = field(default_factory=lambda: float(os.getenv("OCR_TIMEOUT", "60")))

    # Policy consultation
    policy_base_url: str = field(default_factory=lambda: os.getenv("POLICY_BASE_URL", "http://localhost:9002"))
    policy_login_name: str = field(default_factory=lambda: os.getenv("POLICY_LOGIN_NAME", ""))
    policy_user_key: str = field(default_factory=lambda: os.getenv("POLICY_USER_KEY", ""))
    policy_service_id: str = field(default_factory=lambda: os.getenv("POLICY_SERVICE_ID", ""))
    policy_timeout: float = field(default_factory=lambda: float(os.getenv("POLICY_TIMEOUT", "60")))

    # Middleware
    rate_limit_capacity: int = field(default_factory=lambda: int(os.getenv("RATE_LIMIT_CAPACITY", "200")))
    rate_limit_refill: int = field(default_factory=lambda: int(os.getenv("RATE_LIMIT_REFILL", "50")))
    enable_metrics: bool = field(default_factory=lambda: _env_bool("ENABLE_METRICS", True))

    @property
    def system_name(self) -> str:
        return f"{self.city_name} job matching assistant"

    def area_codes_description(self) -> str:
        """Area table ordered by code, e.g. ``市南区(0), 市北区(1)``."""
        ordered = sorted(self.area_codes.items(), key=lambda kv: _code_key(kv[1]))
        return ", ".join(f"{name}({code})" for name, code in ordered)

    def landmarks_example(self) -> str:
        return "、".join(self.landmarks)

    def abbreviations_description(self) -> str:
        return "、".join(f'"{abbr}" means "{full}"' for abbr, full in self.abbreviations.items())

    def area_name(self, code) -> str:
        """Reverse lookup of an area code; unknown codes map to an empty string."""
        code = str(code)
        for name, value in self.area_codes.items():
            if value == code:
                return name
        return ""


def _code_key(code: str):
    try:
        return (0, int(code))
    except ValueError:
        return (1, code)


# Global config instance
config = Config()
