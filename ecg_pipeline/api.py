# // ecg_pipeline/api.py
import numpy as np
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from .api_models import PipelineConfig, PipelineError, SimulationRequest
from .emitter import CollectingEmitter
from .filtering.biquad import design_bandpass_sections
from .pipeline import EcgPipeline
from .signal_sources import create_signal_source

app = FastAPI()

# CORS Configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173", "http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/pipeline_defaults")
async def get_pipeline_defaults():
    return PipelineConfig().model_dump()


@app.post("/simulate_pipeline")
async def simulate_pipeline(params: SimulationRequest):
    config = params.config
    try:
        if params.filter_band_hz is not None:
            low_hz, high_hz = params.filter_band_hz
            sections = design_bandpass_sections(low_hz, high_hz, config.sample_rate_hz, params.filter_order)
            config = config.model_copy(update={"filter_sections": sections})

        source_kwargs = {
            "sample_rate_hz": config.sample_rate_hz,
            "noise_counts": params.noise_counts,
            "seed": params.seed,
        }
        if params.source == "synthetic":
            source_kwargs["heart_rate_bpm"] = params.heart_rate_bpm
            source_kwargs["electrical_axis_degrees"] = params.electrical_axis_degrees
        source = create_signal_source(params.source, **source_kwargs)
    except PipelineError as e:
        raise HTTPException(status_code=400, detail=str(e))

    emitter = CollectingEmitter()
    pipeline = EcgPipeline(config, source=source, emitter=emitter)
    num_ticks = int(round(params.duration_sec * config.sample_rate_hz))
    pipeline.run_offline(num_ticks)

    time_axis = np.arange(num_ticks) / config.sample_rate_hz
    return {
        "sample_rate_hz": config.sample_rate_hz,
        "time_axis": time_axis.tolist(),
        "leads": emitter.leads(),
        "status_messages": emitter.messages,
        **pipeline.summary(),
    }
