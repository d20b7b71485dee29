from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from gradecut import __version__, config
from gradecut.api.prediction_api import router as prediction_router
from gradecut.api.statistics_api import router as statistics_router
from gradecut.calculation import initialize_calculation_system

app = FastAPI(
    title="Grade cutoff estimation service",
    description="Robust statistics and grade cutoff predictions for self-reported exam scores",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(statistics_router, prefix=config.API_PREFIX, tags=["Statistics API"])
app.include_router(prediction_router, prefix=config.API_PREFIX, tags=["Prediction API"])

engine = initialize_calculation_system()


@app.get("/")
async def root():
    return {
        "message": "Grade cutoff estimation service",
        "version": __version__,
        "status": "running"
    }


@app.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "strategies": engine.get_registered_strategies()
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("gradecut.main:app", host=config.SERVICE_HOST, port=config.SERVICE_PORT, reload=False)
