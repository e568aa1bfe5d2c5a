"""FastAPI application entry point"""
import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api import nodes, tasks, universes
from .models.provider import CloudType

# Configure logging
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    logger.info("Starting Universe Commissioner")

    # Report tasks left incomplete by earlier processes
    try:
        from .services.task_manager import get_task_manager
        orphaned = get_task_manager().restore_from_db()
        if orphaned > 0:
            logger.warning(f"Found {orphaned} incomplete tasks owned by other processes")
    except Exception as e:
        logger.error(f"Task restoration failed: {e}")

    yield
    logger.info("Shutting down Universe Commissioner")


# Create FastAPI app
app = FastAPI(
    title="Universe Commissioner API",
    description="Task progress, node provisioning and server addresses for database universes",
    version="0.1.0",
    lifespan=lifespan
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=os.getenv("CORS_ORIGINS", "*").split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(tasks.router)
app.include_router(nodes.router)
app.include_router(universes.router)


@app.get("/api/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "service": "universe-commissioner",
        "version": "0.1.0"
    }


@app.get("/api/config")
async def get_config():
    """Get system configuration"""
    return {
        "db_path": os.getenv("DB_PATH", "/data/commissioner/commissioner.db"),
        "operation_timeout": float(os.getenv("OPERATION_TIMEOUT", "300")),
        "devops_home": os.getenv("DEVOPS_HOME", "/opt/devops"),
        "node_cli": os.getenv("NODE_CLI", "bin/node_cli.sh"),
        "kubectl": os.getenv("KUBECTL", "kubectl"),
        "providers": [code.value for code in CloudType],
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "commissioner.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info"
    )
