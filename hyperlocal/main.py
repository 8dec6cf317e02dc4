import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, status
from hyperlocal.core.db import init_db, close_db
from hyperlocal.api.v1.zones import router as zones_router
from hyperlocal.api.v1.stores import router as stores_router
from hyperlocal.api.v1.inventory import router as inventory_router
from hyperlocal.api.v1.orders import router as orders_router
from hyperlocal.api.v1.riders import router as riders_router
from hyperlocal.core.config import PROJECT_NAME, VERSION
from hyperlocal.core.exception_handlers import setup_exception_handlers

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
log = logging.getLogger("hyperlocal")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handles startup and shutdown events."""
    log.info(f"Starting {PROJECT_NAME} v{VERSION}...")
    await init_db()
    yield
    await close_db()
    log.info(f"{PROJECT_NAME} stopped.")

app = FastAPI(
    title=PROJECT_NAME,
    version=VERSION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc"
)

app.include_router(zones_router, prefix="/api/v1/zones", tags=["Zones"])
app.include_router(stores_router, prefix="/api/v1/stores", tags=["Stores"])
app.include_router(inventory_router, prefix="/api/v1/inventory", tags=["Inventory"])
app.include_router(orders_router, prefix="/api/v1/orders", tags=["Order Management"])
app.include_router(riders_router, prefix="/api/v1/riders", tags=["Riders"])


setup_exception_handlers(app)

@app.get("/health", status_code=status.HTTP_200_OK)
async def health_check():
    """Simple health check endpoint."""
    return {"status": "ok", "app_name": PROJECT_NAME}
