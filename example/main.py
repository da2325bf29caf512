import asyncio

import aiohttp
from status_monitor.cadence import BackoffCadence
from status_monitor.errors import PollingClientTimeout, RemoteJobError
from status_monitor.http_probe import HttpStatusProbe
from status_monitor.models import Duration, StatusResult
from status_monitor.polling_client import PollingClient, PollingOptions
from status_monitor.streaming_client import StreamingClient, StreamingOptions
from status_monitor.testing import StreamingMockCometClient, StreamingMockOptions
from status_server import StatusServer


async def poll_job(port: int):
    async with aiohttp.ClientSession() as session:
        options = PollingOptions(
            probe=HttpStatusProbe(f"http://localhost:{port}", session),
            frequency=Duration.seconds(1),
            timeout=Duration.minutes(1),
            cadence=BackoffCadence(backoff_factor=2.0, max_delay=Duration.seconds(8)),
        )
        client = PollingClient.create(options)

        try:
            payload = await client.observe()
            print(f"Job completed after {payload['elapsed']:.2f}s")
        except PollingClientTimeout as e:
            print(f"Polling timed out: {e}")
        except RemoteJobError as e:
            print(f"Job failed: {e.raw_response}")


async def stream_job():
    comet = StreamingMockCometClient(
        StreamingMockOptions(
            url="http://localhost/cometd",
            id="job-1",
            message_playlist=[
                {"id": "job-1", "state": "queued"},
                {"id": "job-1", "state": "running"},
                {"id": "job-1", "state": "done", "result": 42},
            ],
        )
    )

    def processor(message: dict) -> StatusResult:
        print(f"Received: {message}")
        if message["state"] == "done":
            return StatusResult(completed=True, payload=message["result"])
        return StatusResult(completed=False)

    client = StreamingClient.create(
        StreamingOptions(url=comet.url, channel="/topic/jobs", stream_processor=processor),
        comet,
    )
    print(f"Streamed result: {await client.observe()}")


async def main():
    PORT = 8000
    server = StatusServer(completion_time=5.0, error_rate=0.05)
    await server.start(port=PORT)
    print(f"Server started on http://localhost:{PORT}")

    try:
        await poll_job(PORT)
        await stream_job()
    finally:
        await server.stop()


if __name__ == "__main__":
    asyncio.run(main())
