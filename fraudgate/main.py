from fastapi import FastAPI
from .routes.checkout import router as checkout_router
from .routes.snapshots import router as snapshots_router

app = FastAPI(title="FraudGate checkout rules",
              description="Snapshot publishing and checkout rule evaluation",
    version="0.1.0",
    docs_url="/docs",          # Swagger UI
    redoc_url="/redoc",        # ReDoc
    openapi_url="/openapi.json")

app.include_router(checkout_router)
app.include_router(snapshots_router)

@app.get("/health")
def health():
    return {"ok": True}
