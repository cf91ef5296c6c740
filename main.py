from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ecg_pipeline.api import app as pipeline_app

app = FastAPI(title="ECG Pipeline API", version="1.0.0")

# CORS middleware - local visualizer development servers
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:5173",
        "http://127.0.0.1:5173",
        "http://localhost:3000",
        "http://127.0.0.1:3000"
    ],
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)

@app.get("/")
def read_root():
    return {"message": "ECG Pipeline API is running", "status": "ok"}

@app.get("/health")
def health_check():
    return {"status": "healthy"}

# Pipeline routes live under /api
app.mount("/api", pipeline_app)

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
