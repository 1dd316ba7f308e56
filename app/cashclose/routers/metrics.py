from fastapi import APIRouter, Response

from app.cashclose.core.metrics import metrics

router = APIRouter()


@router.get("/ops/metrics", include_in_schema=False)
def closure_metrics() -> Response:
    snapshot = metrics.render()
    return Response(content=snapshot.content, media_type=snapshot.content_type)
