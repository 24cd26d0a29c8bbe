import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.alerts import router as alerts_router
from api.metrics import router as metrics_router
from settings import settings

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(
    title="Steam Alerts API",
    version="1.0.0",
    docs_url="/docs",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(alerts_router, prefix="/api")
app.include_router(metrics_router, prefix="/api")

@app.get("/")
async def root():
    return {
        "name": "Steam Alerts API",
        "version": "1.0.0",
        "docs": "/docs",
    }

@app.get("/health")
async def health():
    from alerts import get_alert_engine
    from metrics import get_metric_store

    engine_stats = get_alert_engine().stats()
    store_stats = get_metric_store().stats()

    return {
        "status": "healthy",
        "alerts": {
            "rules": engine_stats["rules_count"],
            "enabled_rules": engine_stats["enabled_rules"],
            "ticks": engine_stats["ticks"],
            "history_size": engine_stats["history_size"],
        },
        "metrics": {
            "apps": store_stats["apps"],
            "snapshots_ingested": store_stats["snapshots_ingested"],
            "uptime_seconds": round(store_stats["uptime_seconds"], 2)
        }
    }

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host=settings.api_host, port=settings.api_port, reload=True)
