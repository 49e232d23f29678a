"""FastAPI application entry point."""

import logging
import sys

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from flowdiff import __version__
from flowdiff.config import get_settings

# Configure logging
log_level = get_settings().log_level
logging.basicConfig(
    level=getattr(logging, log_level, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    stream=sys.stdout,
)

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Workflow Diff Engine",
    description="Apply batches of structural edits to workflow graphs and validate the result",
    version=__version__,
)

# CORS middleware - allow any localhost port for local tooling
app.add_middleware(
    CORSMiddleware,
    allow_origin_regex=r"^http://localhost(:\d+)?$",
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy"}


# Import and include routers after app is created to avoid circular imports
from flowdiff.api import diff  # noqa: E402

app.include_router(diff.router, prefix="/api/v1", tags=["diff"])
