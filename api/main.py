"""FastAPI JSON and Prometheus interface for an Airthings Wave Plus sensor.

Single-process, single-sensor service. All handlers obtain readings through
one ReadCoordinator, which owns the cache and serializes device access.

Endpoints:
- GET|HEAD /         → current reading as JSON
- GET|HEAD /metrics  → Prometheus text exposition
- anything else → 501

Error mapping:
- ReadFailed → 503
"""

import logging
import os
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import Depends, FastAPI, Request, Response
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, Gauge, generate_latest
from pydantic import BaseModel, ConfigDict, Field

from wave_lib import ReadCoordinator, ReadPolicy, SensorReading, protocol
from wave_lib.errors import ReadFailed
from wave_lib.transport import discover

# =============================================================================
# Environment Configuration
# =============================================================================

DEVICE_ID = os.getenv("DEVICE_ID") or None
DEVICE_MODE = os.getenv("DEVICE_MODE", "ble").lower()
API_HOST = os.getenv("API_HOST", "0.0.0.0")
API_PORT = int(os.getenv("PORT", "8080"))
CACHE_TTL_S = float(os.getenv("CACHE_TTL_S", protocol.CACHE_TTL))
LOCK_TIMEOUT_S = float(os.getenv("LOCK_TIMEOUT_S", protocol.LOCK_TIMEOUT))
READ_TIMEOUT_S = float(os.getenv("READ_TIMEOUT_S", protocol.READ_TIMEOUT))
CONNECT_TIMEOUT_S = float(os.getenv("CONNECT_TIMEOUT_S", protocol.CONNECT_TIMEOUT))
RETRY_DELAY_S = float(os.getenv("RETRY_DELAY_S", protocol.RETRY_DELAY))
MAX_READ_ATTEMPTS = int(os.getenv("MAX_READ_ATTEMPTS", protocol.MAX_READ_ATTEMPTS))
SCAN_TIMEOUT_S = float(os.getenv("SCAN_TIMEOUT_S", protocol.SCAN_TIMEOUT))

API_VERSION = "0.1.0"

# Configure logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


def policy_from_env() -> ReadPolicy:
    """Build the read policy from environment configuration."""
    return ReadPolicy(
        cache_ttl_s=CACHE_TTL_S,
        lock_timeout_s=LOCK_TIMEOUT_S,
        read_timeout_s=READ_TIMEOUT_S,
        connect_timeout_s=CONNECT_TIMEOUT_S,
        retry_delay_s=RETRY_DELAY_S,
        max_attempts=MAX_READ_ATTEMPTS,
    )


async def build_coordinator() -> ReadCoordinator:
    """Resolve the device and construct the process-wide coordinator.

    Raises:
        DiscoveryFailure: If the device cannot be found (fatal at startup)
    """
    policy = policy_from_env()
    if DEVICE_MODE == "sim":
        from fakes.fake_device import FakeDevice

        logger.warning("DEVICE_MODE=sim, serving readings from FakeDevice")
        adapter = FakeDevice(read_delay_s=0.5)
    else:
        adapter = await discover(
            device_id=DEVICE_ID,
            scan_timeout_s=SCAN_TIMEOUT_S,
            connect_timeout_s=policy.connect_timeout_s,
        )
    logger.info(f"Using device {adapter.device_id}")
    return ReadCoordinator(adapter, policy)


# =============================================================================
# Response Models
# =============================================================================

class ReadingResponse(BaseModel):
    """Response for GET /. Masked channels are null."""
    model_config = ConfigDict(populate_by_name=True)

    humidity: float
    radon_st_avg: int = Field(alias="radonStAvg")
    radon_lt_avg: int = Field(alias="radonLtAvg")
    temperature: float
    pressure: float
    co2: Optional[int] = None
    voc: Optional[int] = None

    @classmethod
    def from_reading(cls, reading: SensorReading) -> "ReadingResponse":
        return cls(
            humidity=reading.humidity,
            radon_st_avg=reading.radon_st_avg,
            radon_lt_avg=reading.radon_lt_avg,
            temperature=reading.temperature,
            pressure=reading.pressure,
            co2=reading.co2,
            voc=reading.voc,
        )


# =============================================================================
# Metrics
# =============================================================================

class SensorGauges:
    """Prometheus gauges for one sensor, kept in their own registry."""

    def __init__(self) -> None:
        self.registry = CollectorRegistry()
        self._gauges = {
            "humidity": Gauge("humidity_percent", "Humidity, %rH", registry=self.registry),
            "radon_st_avg": Gauge(
                "radon_short_term_avg_becquerels",
                "Radon, short term average, Bq/m3",
                registry=self.registry,
            ),
            "radon_lt_avg": Gauge(
                "radon_long_term_avg_becquerels",
                "Radon, long term average, Bq/m3",
                registry=self.registry,
            ),
            "temperature": Gauge("temperature_celsius", "Temperature, Celsius", registry=self.registry),
            "pressure": Gauge(
                "pressure_pascal", "Relative atmospheric pressure, hPa", registry=self.registry
            ),
            "co2": Gauge("carbondioxide_ppm", "Carbon dioxide, ppm", registry=self.registry),
            "voc": Gauge("voc_ppb", "Volatile organic compounds, ppb", registry=self.registry),
        }

    def update(self, reading: SensorReading) -> None:
        """Set every gauge whose channel is present in the reading."""
        for field_name, gauge in self._gauges.items():
            value = getattr(reading, field_name)
            if value is not None:
                gauge.set(value)

    def render(self) -> bytes:
        return generate_latest(self.registry)


# =============================================================================
# Dependencies
# =============================================================================

def get_coordinator(request: Request) -> ReadCoordinator:
    return request.app.state.coordinator


def get_gauges(request: Request) -> SensorGauges:
    return request.app.state.gauges


def client_address(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


# =============================================================================
# App Factory
# =============================================================================

def create_app(coordinator: Optional[ReadCoordinator] = None) -> FastAPI:
    """Create the FastAPI application.

    Args:
        coordinator: Pre-built coordinator (e.g., wrapping a FakeDevice for
                    tests). If None, the device is discovered at startup.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if getattr(app.state, "coordinator", None) is None:
            app.state.coordinator = await build_coordinator()
        policy = app.state.coordinator.policy
        logger.info("=" * 60)
        logger.info("Wave Plus API started")
        logger.info(f"Version: {API_VERSION}")
        logger.info(f"Device: {app.state.coordinator.device_id}")
        logger.info(f"Host: {API_HOST}")
        logger.info(f"Port: {API_PORT}")
        logger.info(f"Cache TTL: {policy.cache_ttl_s}s")
        logger.info(f"Lock Timeout: {policy.lock_timeout_s}s")
        logger.info(f"Log Level: {LOG_LEVEL}")
        logger.info("=" * 60)
        yield
        logger.info("Shutdown complete")

    app = FastAPI(
        title="Wave Plus API",
        description="JSON and Prometheus interface for Airthings Wave Plus sensors",
        version=API_VERSION,
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.coordinator = coordinator
    app.state.gauges = SensorGauges()

    @app.exception_handler(ReadFailed)
    async def read_failed_handler(request: Request, exc: ReadFailed):
        """Map ReadFailed to 503 Service Unavailable."""
        logger.error(f"ReadFailed: {exc}")
        return JSONResponse(status_code=503, content={"detail": str(exc)})

    @app.api_route("/", methods=["GET", "HEAD"], response_model=ReadingResponse)
    async def get_reading(
        request: Request,
        response: Response,
        coordinator: ReadCoordinator = Depends(get_coordinator),
    ):
        """Current sensor reading, from cache when fresh."""
        reading, was_cached = await coordinator.get_reading()
        body = ReadingResponse.from_reading(reading)
        source = "cached" if was_cached else "new"
        logger.info(
            f"Responding with {source} data: {body.model_dump(by_alias=True)} "
            f"to {client_address(request)}"
        )
        response.headers["X-Cache"] = "HIT" if was_cached else "MISS"
        return body

    @app.api_route("/metrics", methods=["GET", "HEAD"])
    async def get_metrics(
        request: Request,
        coordinator: ReadCoordinator = Depends(get_coordinator),
        gauges: SensorGauges = Depends(get_gauges),
    ):
        """Prometheus exposition of the current reading."""
        reading, was_cached = await coordinator.get_reading()
        gauges.update(reading)
        logger.info(
            f"Responding with {'cached' if was_cached else 'new'} metrics "
            f"to {client_address(request)}"
        )
        return Response(
            content=gauges.render(),
            media_type=CONTENT_TYPE_LATEST,
            headers={"X-Cache": "HIT" if was_cached else "MISS"},
        )

    @app.api_route("/{path:path}", methods=ALL_METHODS, include_in_schema=False)
    async def not_implemented(path: str):
        return Response(status_code=501)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=API_HOST, port=API_PORT)
