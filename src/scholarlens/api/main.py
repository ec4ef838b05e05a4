"""
ScholarLens API - FastAPI backend for research sessions.
Streams the search workflow with Server-Sent Events (SSE).
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from dotenv import find_dotenv, load_dotenv

from scholarlens import __version__
from scholarlens.utils.logging_config import Logger
from .routes import research

# Load local .env automatically so the Gemini key is available in API mode.
load_dotenv(find_dotenv(usecwd=True), override=False)

app = FastAPI(
    title="ScholarLens API",
    description="API for AI-enriched research sessions",
    version=__version__,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def startup():
    Logger.init()


@app.on_event("shutdown")
async def shutdown():
    await research.shutdown_research_context()
    Logger.close()


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "version": __version__}


app.include_router(research.router, prefix="/api", tags=["Research"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
