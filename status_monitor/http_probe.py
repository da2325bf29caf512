import aiohttp
from loguru import logger

from status_monitor.errors import RemoteJobError
from status_monitor.models import JobStatus, StatusResult


class HttpStatusProbe:
    """Probe for a job exposing ``GET {base_url}/status``"""

    def __init__(self, base_url: str, session: aiohttp.ClientSession, path: str = "/status"):
        self.base_url = base_url.rstrip("/")
        self.session = session
        self.path = path
        self.logger = logger

    @property
    def url(self) -> str:
        return f"{self.base_url}{self.path}"

    async def __call__(self) -> StatusResult:
        """Fetches the status of a job from the server"""
        url = self.url

        try:
            async with self.session.get(url) as response:
                response.raise_for_status()
                data = await response.json()
        except aiohttp.ClientResponseError as e:
            self.logger.error(f"HTTP error {e.status} at {url}: {e.message}")
            raise
        except aiohttp.ClientError as e:
            self.logger.error(f"Error fetching status from {url}: {e}")
            raise

        status = JobStatus(data["result"])
        if status is JobStatus.error:
            raise RemoteJobError(f"Job at {url} reported an error", raw_response=data)
        if status is JobStatus.completed:
            return StatusResult(completed=True, payload=data)
        return StatusResult(completed=False)
