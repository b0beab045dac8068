"""Job board client and listing formatter."""

import logging
from typing import Any, Callable, Dict, Optional

import httpx
from pydantic import ValidationError

from .config import Config
from .errors import TransportError
from .models import (
    EDUCATION_LABELS,
    EXPERIENCE_LABELS,
    FormattedJob,
    JobBoardResponse,
    JobListing,
    JobResult,
)
from .retry import RetryPolicy, send_with_retry

logger = logging.getLogger(__name__)

NEGOTIABLE_SALARY = "Negotiable"
UNKNOWN_AREA = "Unknown area"


class JobClient:
    """
    Async client for the job board search API.

    One GET endpoint serves both area and coordinate searches; the filters
    travel as query parameters.
    """

    def __init__(
        self,
        url: str,
        area_name: Callable[[Any], str],
        timeout: float = 30.0,
        retry: Optional[RetryPolicy] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.client = httpx.AsyncClient(timeout=timeout, transport=transport)
        self.url = url
        self.area_name = area_name
        self.retry = retry or RetryPolicy(attempts=2, base_delay=0.5)

    @classmethod
    def from_config(cls, cfg: Config, transport: Optional[httpx.AsyncBaseTransport] = None) -> "JobClient":
        return cls(
            url=cfg.job_api_url,
            area_name=cfg.area_name,
            timeout=cfg.job_api_timeout,
            transport=transport,
        )

    async def close(self):
        await self.client.aclose()

    async def query(self, params: Dict[str, Any]) -> JobBoardResponse:
        """Raw job board search. A body ``code`` other than 200 is an error."""
        resp = await send_with_retry(
            lambda: self.client.get(self.url, params=params),
            self.retry,
            "Job board",
        )
        if resp.status_code != 200:
            raise TransportError(f"Job board returned HTTP {resp.status_code}: {resp.text[:200]}")

        body = resp.text
        logger.debug(f"Job board response: {body[:200]}{'...' if len(body) > 200 else ''}")

        try:
            result = JobBoardResponse.model_validate_json(resp.content)
        except ValidationError as e:
            raise TransportError(f"Undecodable job board response: {e}") from e

        logger.info(f"Job board result: code={result.code}, rows={len(result.rows)}")

        if result.code != 200:
            raise TransportError(f"Job board error: {result.msg or f'code {result.code}'}")
        return result

    async def search(self, params: Dict[str, Any]) -> JobResult:
        return self.format_result(await self.query(params))

    def format_job(self, job: JobListing) -> FormattedJob:
        min_salary = job.minSalary or 0
        max_salary = job.maxSalary or 0
        if min_salary > 0 or max_salary > 0:
            salary = f"{min_salary}-{max_salary} yuan/month"
        else:
            salary = NEGOTIABLE_SALARY

        location = UNKNOWN_AREA
        if job.jobLocationAreaCode is not None:
            location = self.area_name(job.jobLocationAreaCode) or UNKNOWN_AREA

        return FormattedJob(
            jobTitle=job.jobTitle,
            companyName=job.companyName,
            salary=salary,
            location=location,
            education=EDUCATION_LABELS.get(job.education or "", EDUCATION_LABELS["-1"]),
            experience=EXPERIENCE_LABELS.get(job.experience or "", EXPERIENCE_LABELS["0"]),
            appJobUrl=job.appJobUrl,
        )

    def format_result(self, response: JobBoardResponse) -> JobResult:
        """Format board rows; the board's ``data`` rides on the last listing."""
        listings = [self.format_job(row) for row in response.rows]
        if listings and response.data is not None:
            listings[-1].data = response.data
        return JobResult(jobListings=listings, data=response.data)
