"""
Coverage reporting integration.

The reporter never raises and never touches RunResult.status: the
build/test verdict and the reporting verdict are recorded separately.
"""

import logging
import os
from typing import Iterable, Optional

import httpx

from engine.src.config import get_settings
from engine.src.models.run import COVERAGE_ARTIFACT, ReportOutcome, ReportStatus, RunResult

logger = logging.getLogger(__name__)
settings = get_settings()

SKIP_DIRS = {".git", "node_modules"}

def find_coverage_report(workdir: str, names: Iterable[str]) -> Optional[str]:
    """First file under workdir whose name is one of `names`, shallowest first."""
    wanted = set(names)
    matches = []
    for root, dirs, files in os.walk(workdir):
        dirs[:] = sorted(d for d in dirs if d not in SKIP_DIRS)
        for filename in sorted(files):
            if filename in wanted:
                path = os.path.join(root, filename)
                matches.append((os.path.relpath(path, workdir).count(os.sep), path))
    if not matches:
        return None
    return min(matches)[1]

class ResultReporter:
    def __init__(
        self,
        upload_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.upload_url = upload_url or settings.coverage_upload_url
        self.timeout = timeout or settings.report_timeout
        self._transport = transport

    async def report(self, result: RunResult, credential: Optional[str]) -> ReportOutcome:
        """Upload the run's coverage artifact authenticated by `credential`."""
        artifact = result.artifacts.get(COVERAGE_ARTIFACT)
        if not artifact:
            logger.info(f"Run {result.run_id}: no coverage report to upload")
            return ReportOutcome(status=ReportStatus.SKIPPED, detail="No coverage report produced")

        if not credential:
            return self._degraded(result, artifact, "No upload token configured")

        try:
            with open(artifact, "rb") as f:
                payload = f.read()
        except OSError as e:
            return self._degraded(result, artifact, f"Cannot read coverage report: {e.strerror}")

        params = {
            "build": result.run_id,
            "branch": result.branch or "",
            "commit": result.commit_sha or "",
            "status": result.status.value,
            "name": os.path.basename(artifact),
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    self.upload_url,
                    params=params,
                    content=payload,
                    headers={
                        "Authorization": f"token {credential}",
                        "Content-Type": "text/plain",
                    },
                )
        except httpx.HTTPError as e:
            return self._degraded(result, artifact, f"Upload failed: {type(e).__name__}")

        if response.is_success:
            logger.info(f"Run {result.run_id}: coverage report accepted")
            return ReportOutcome(status=ReportStatus.ACCEPTED, artifact=artifact)

        return self._degraded(result, artifact, f"Upload rejected with HTTP {response.status_code}")

    def _degraded(self, result: RunResult, artifact: str, detail: str) -> ReportOutcome:
        logger.warning(f"Run {result.run_id}: coverage reporting degraded: {detail}")
        return ReportOutcome(status=ReportStatus.DEGRADED, artifact=artifact, detail=detail)
