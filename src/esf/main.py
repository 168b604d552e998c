# main.py
import uvicorn
from esf.adapters.aiohttp_client_adapter import AioHttpClientAdapter
from esf.adapters.asyncio_clock import AsyncioClock
from esf.adapters.retry_tenacity import TenacityRetryAdapter
from esf.adapters.web.fastapi import create_app
from esf.core.config import GatewayConfig, JobTrackerConfig
from esf.core.interfaces.http_client import HttpClientPort
from esf.core.interfaces.observers import JobStateObserver
from esf.core.logging_config import configure_logging
from esf.core.managers.job_state_machine import JobStateMachine
from esf.core.managers.status_poller import StatusPoller
from esf.core.services.search_gateway import HttpSearchGateway
from esf.core.settings import app_settings, logger


# main lives at the outermost layer (not in core)
# Instantiates all the concrete adapters
# Wires dependencies together
# Starts the application

def build_tracker(
    client: HttpClientPort,
    settings=app_settings,
    observers: list[JobStateObserver] | None = None,
) -> JobStateMachine:
    gateway_config = GatewayConfig.from_app_settings(settings)
    tracker_config = JobTrackerConfig.from_app_settings(settings)
    retry_adapter = TenacityRetryAdapter(
        attempts=gateway_config.result_fetch_attempts,
        wait_initial=gateway_config.result_retry_base_wait,
        wait_max=gateway_config.result_retry_max_wait,
    )
    gateway = HttpSearchGateway(client, gateway_config, retry_port=retry_adapter)
    poller = StatusPoller(AsyncioClock(), gateway, tracker_config)
    return JobStateMachine(gateway, poller, tracker_config, observers=observers)


def main():
    configure_logging(app_settings.ESF_LOG_LEVEL)
    app_settings.print_settings(logger)

    http_client = AioHttpClientAdapter(default_total=app_settings.ESF_REQUEST_TIMEOUT)
    app = create_app(tracker_factory=build_tracker, http_client=http_client)

    # Let uvicorn inherit existing logging (separate sinks & correlation ids)
    uvicorn.run(
        app,
        host=app_settings.ESF_API_SERVER_HOST,
        port=app_settings.ESF_API_SERVER_PORT,
        log_config=None,
        log_level=str(app_settings.ESF_LOG_LEVEL).lower(),
    )


if __name__ == "__main__":
    main()
