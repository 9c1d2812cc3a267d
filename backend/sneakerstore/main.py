from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging

from sneakerstore.core.config import settings
from sneakerstore.core.database import connect_to_mongo, close_mongo_connection
from sneakerstore.api.routes import cart, orders, payments, coupons

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title=settings.PROJECT_NAME,
    description="Backend API for Sneakerstore - carts, checkout and PIX, Boleto and card payments",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.BACKEND_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Startup and shutdown events
@app.on_event("startup")
async def startup_event():
    """Initialize services on startup."""
    logger.info("Starting up Sneakerstore backend...")
    await connect_to_mongo()
    logger.info("Sneakerstore backend started successfully")


@app.on_event("shutdown")
async def shutdown_event():
    """Clean up services on shutdown."""
    logger.info("Shutting down Sneakerstore backend...")
    await close_mongo_connection()
    logger.info("Sneakerstore backend shut down successfully")


# Health check endpoint
@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "service": "sneakerstore-backend",
        "version": "1.0.0"
    }


# Root endpoint
@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "name": settings.PROJECT_NAME,
        "version": "1.0.0",
        "description": "Sneakerstore Backend API",
        "docs": "/docs",
        "health": "/health"
    }


# Include routers
app.include_router(cart.router, prefix=f"{settings.API_V1_PREFIX}/carts", tags=["Cart"])
app.include_router(orders.router, prefix=f"{settings.API_V1_PREFIX}/orders", tags=["Orders"])
app.include_router(payments.router, prefix=f"{settings.API_V1_PREFIX}/payments", tags=["Payments"])
app.include_router(coupons.router, prefix=f"{settings.API_V1_PREFIX}/coupons", tags=["Coupons"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
