from fastapi import FastAPI
from contextlib import asynccontextmanager
from scorecast.database import create_db_and_tables
from scorecast.logging_config import setup_logging


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup: logging and database tables
    setup_logging()
    create_db_and_tables()
    yield


# Initialize FastAPI app
app = FastAPI(
    title="Scorecast",
    description="Match prediction scoring and leaderboard service",
    version="1.0.0",
    lifespan=lifespan
)

# Include routers
from scorecast.routers import admin, leaderboard, predictions

app.include_router(predictions.router, tags=["predictions"])
app.include_router(leaderboard.router, tags=["leaderboard"])
app.include_router(admin.router, tags=["admin"])


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
