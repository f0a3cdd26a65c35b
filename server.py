# -*- coding: utf-8 -*-
"""
Server Module
HTTP API for running strategy comparisons in the background.
"""

import logging
import os
import shutil
import uuid
from typing import Optional, List, Dict, Any

import numpy as np
from fastapi import FastAPI, UploadFile, File, HTTPException, BackgroundTasks
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from config import DEFAULT_STRATEGIES
from ranking_algorithm import STRATEGY_REGISTRY
from restaurant_api import load_default_restaurants
from data_loader import load_stores_from_csv, load_customers_from_csv
from simulation import compare_strategies

logger = logging.getLogger(__name__)

app = FastAPI(title="Surplus Food Marketplace Simulation API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

UPLOAD_DIR = os.getenv("SURPLUS_UPLOAD_DIR", "temp_uploads")
RESULTS_DIR = os.getenv("SURPLUS_RESULTS_DIR", "simulation_results")


class SimulationRequest(BaseModel):
    num_days: int = Field(7, gt=0)
    customers_per_day: int = Field(100, gt=0)
    n_displayed: int = Field(5, ge=0)
    seed: Optional[int] = 12345
    strategies: List[str] = Field(default_factory=lambda: list(DEFAULT_STRATEGIES))
    stores_filename: Optional[str] = None
    customers_filename: Optional[str] = None


class SimulationResponse(BaseModel):
    status: str
    message: str
    results_id: str


# results kept in memory by id
latest_results: Dict[str, Dict[str, Any]] = {}


def sanitize_for_json(obj):
    """
    Recursively convert numpy types to native Python types for JSON serialization
    """
    if isinstance(obj, dict):
        return {k: sanitize_for_json(v) for k, v in obj.items()}
    elif isinstance(obj, (list, tuple)):
        return [sanitize_for_json(v) for v in obj]
    elif isinstance(obj, np.integer):
        return int(obj)
    elif isinstance(obj, np.floating):
        return float(obj)
    elif isinstance(obj, np.ndarray):
        return sanitize_for_json(obj.tolist())
    else:
        return obj


def _upload_path(filename: str) -> str:
    # uploads are addressed by bare generated names only
    path = os.path.join(UPLOAD_DIR, os.path.basename(filename))
    if not os.path.exists(path):
        raise FileNotFoundError(f"Uploaded file not found: {filename}")
    return path


def run_simulation_task(request: SimulationRequest, results_id: str) -> None:
    """
    Background task to run the comparison and store its summary
    """
    try:
        logger.info(f"Starting simulation {results_id}: {request}")

        if request.stores_filename:
            restaurants = load_stores_from_csv(_upload_path(request.stores_filename))
        else:
            restaurants = load_default_restaurants()

        customer_pool = None
        if request.customers_filename:
            customer_pool = load_customers_from_csv(_upload_path(request.customers_filename),
                                                    seed=request.seed or 12345)

        results = compare_strategies(
            restaurants,
            strategies=request.strategies,
            n_displayed=request.n_displayed,
            num_days=request.num_days,
            customers_per_day=request.customers_per_day,
            seed=request.seed,
            customer_pool=customer_pool,
            output_dir=os.path.join(RESULTS_DIR, results_id),
            verbose=False,
        )

        latest_results[results_id] = {
            "status": "completed",
            "data": sanitize_for_json({
                "summary": results["summary"],
                "stores": {name: engine.store_results() for name, engine in results["engines"].items()},
            }),
        }
    except Exception as e:
        logger.exception(f"Simulation {results_id} failed")
        latest_results[results_id] = {"status": "failed", "error": str(e)}


@app.get("/")
def read_root():
    return {"status": "ok", "message": "Surplus Food Marketplace Simulation API is running"}


@app.get("/strategies")
def list_strategies():
    return {"strategies": list(STRATEGY_REGISTRY)}


@app.post("/upload")
async def upload_file(file: UploadFile = File(...)):
    """
    Upload a stores or customers CSV.
    Returns the saved filename to pass in the run request.
    """
    os.makedirs(UPLOAD_DIR, exist_ok=True)
    file_ext = os.path.splitext(file.filename or "")[1] or ".csv"
    unique_filename = f"{uuid.uuid4()}{file_ext}"
    file_path = os.path.join(UPLOAD_DIR, unique_filename)

    with open(file_path, "wb") as buffer:
        shutil.copyfileobj(file.file, buffer)

    return {"filename": unique_filename, "original_name": file.filename}


@app.post("/run", response_model=SimulationResponse)
async def run_simulation(request: SimulationRequest, background_tasks: BackgroundTasks):
    """
    Trigger a new comparison run.
    """
    unknown = [s for s in request.strategies if s not in STRATEGY_REGISTRY]
    if unknown:
        raise HTTPException(status_code=422, detail=f"Unknown strategies: {unknown}")

    results_id = str(uuid.uuid4())
    latest_results[results_id] = {"status": "running"}
    background_tasks.add_task(run_simulation_task, request, results_id)

    return {
        "status": "submitted",
        "message": "Simulation started in background",
        "results_id": results_id,
    }


@app.get("/results/{results_id}")
async def get_results(results_id: str):
    """
    Get results for a specific simulation run.
    """
    if results_id not in latest_results:
        raise HTTPException(status_code=404, detail="Results not found")
    return latest_results[results_id]


if __name__ == "__main__":
    import uvicorn
    from logger import configure_module_loggers

    configure_module_loggers(logging.INFO)
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
