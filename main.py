from __future__ import annotations

from fastapi import FastAPI, HTTPException

from scb.api_models import PlanRequest, RenderRequest
from scb.errors import ConfigError
from scb.logging_config import setup_logging
from scb.provision import plan_from_request, render_from_request

app = FastAPI(title="Search Cluster Bootstrap")


@app.on_event("startup")
def startup() -> None:
    setup_logging("api")


@app.get("/health")
def health() -> dict:
    return {"status": "healthy"}


@app.post("/plan")
def create_plan(req: PlanRequest) -> dict:
    try:
        return plan_from_request(req).to_dict()
    except ConfigError as e:
        raise HTTPException(status_code=400, detail=e.to_dict())


@app.post("/render")
def render(req: RenderRequest) -> dict:
    try:
        return render_from_request(req).to_dict()
    except ConfigError as e:
        raise HTTPException(status_code=400, detail=e.to_dict())
