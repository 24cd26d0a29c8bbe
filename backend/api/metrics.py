from fastapi import APIRouter, HTTPException, UploadFile, File
import pandas as pd
from io import StringIO
from typing import List

from metrics import (
    MetricSnapshot,
    IngestionResult,
    get_metric_store,
    to_metric_point,
)

router = APIRouter(prefix="/metrics", tags=["Metrics"])


@router.post("/snapshots", response_model=IngestionResult)
async def ingest_snapshots(snapshots: List[MetricSnapshot]):
    store = get_metric_store()
    return store.ingest_batch(snapshots)


@router.post("/upload", response_model=IngestionResult)
async def upload_history_csv(file: UploadFile = File(...)):
    """
    Load metric history from CSV.

    Long format: app_id, metric, value, timestamp
    Wide format: app_id, timestamp, <metric>, <metric>, ...
    """
    content = await file.read()
    try:
        df = pd.read_csv(StringIO(content.decode('utf-8')))
    except (UnicodeDecodeError, pd.errors.ParserError, pd.errors.EmptyDataError) as e:
        raise HTTPException(400, f"Could not parse CSV: {e}")

    df.columns = df.columns.str.lower().str.strip()
    df = _to_long_format(df)

    try:
        return get_metric_store().ingest_history_frame(df)
    except ValueError as e:
        raise HTTPException(400, str(e))


def _to_long_format(df: pd.DataFrame) -> pd.DataFrame:
    if 'ts' in df.columns and 'timestamp' not in df.columns:
        df = df.rename(columns={'ts': 'timestamp'})
    if 'appid' in df.columns and 'app_id' not in df.columns:
        df = df.rename(columns={'appid': 'app_id'})

    if 'metric' in df.columns and 'value' in df.columns:
        return df

    value_cols = [c for c in ('ccu', 'daily_reviews', 'positive_rate', 'price') if c in df.columns]
    if not value_cols or 'app_id' not in df.columns or 'timestamp' not in df.columns:
        raise HTTPException(400, "CSV must have app_id, timestamp and metric columns")

    return df.melt(
        id_vars=['app_id', 'timestamp'],
        value_vars=value_cols,
        var_name='metric',
        value_name='value'
    )


@router.post("/{app_id}/history/{metric}", response_model=IngestionResult)
async def append_history(app_id: str, metric: str, rows: List[dict]):
    """Append raw history rows ({timestamp, value}) for one metric"""
    store = get_metric_store()
    errors = 0
    points = []
    for row in rows:
        try:
            points.append(to_metric_point(row))
        except (TypeError, ValueError):
            errors += 1

    frame = pd.DataFrame(
        [{"app_id": app_id, "metric": metric, "value": p.value, "timestamp": p.timestamp} for p in points],
        columns=["app_id", "metric", "value", "timestamp"],
    )
    result = store.ingest_history_frame(frame)
    result.errors += errors
    result.success = result.errors == 0
    return result


@router.get("/")
async def list_metrics():
    store = get_metric_store()
    return {
        "app_ids": store.app_ids(),
        "stats": store.stats()
    }


@router.get("/{app_id}")
async def get_metrics(app_id: str):
    metrics = get_metric_store().get(app_id)
    if metrics is None:
        raise HTTPException(404, f"No metrics for app: {app_id}")
    return metrics.model_dump(mode="json")


@router.delete("/")
async def clear_metrics():
    get_metric_store().clear()
    return {"message": "Metrics cleared"}
