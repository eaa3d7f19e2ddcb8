from fastapi import APIRouter, Request
from fastapi.responses import PlainTextResponse

from revalidator.metrics import PrometheusExporter, metrics_registry

router = APIRouter(prefix="/metrics", tags=["metrics"])


@router.get("", response_class=PlainTextResponse, summary="Prometheus metrics")
async def export_metrics(request: Request) -> str:
    registry = getattr(request.app.state, "metrics", None) or metrics_registry
    return PrometheusExporter(registry).build_payload()
