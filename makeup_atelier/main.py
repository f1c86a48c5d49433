from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from makeup_atelier.config import CORS_ORIGINS, logger

from .routers import router

# Initialize FastAPI application
app = FastAPI(
    title="Makeup Atelier API",
    description="AI-powered virtual lipstick try-on service",
    version="1.0.0",
)

app.include_router(router)


# Configure CORS; credentials are needed for the anonymous quota cookie,
# which browsers refuse to send to a wildcard origin
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials="*" not in CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-RateLimit-Remaining", "Retry-After"],
)


logger.info("Makeup Atelier API initialized successfully")
