import logging

import uvicorn
from core.exception_handler import ValidationErrorHandler
from core.lifespan import lifespan
from core.settings import settings
from core.throttling import rate_limiter_manager
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from routes.dues_routes import router as dues_router
from routes.notification_routes import router as notification_router
from routes.payment_routes import router as payment_router

logging.basicConfig(level=logging.INFO)
app = FastAPI(
    lifespan=lifespan,
    title=settings.PROJECT_NAME,
    exception_handlers={429: rate_limiter_manager.limit_exceeded_handler},
    version="2.0.0",
)

app.include_router(dues_router, prefix="/v2/dues")
app.include_router(notification_router, prefix="/v2/notifications")
app.include_router(payment_router, prefix="/v2/payments")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_HOSTS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health", tags=["System"])
async def health_check():
    return {"status": "ok"}


app.add_exception_handler(
    RequestValidationError,
    ValidationErrorHandler(),
)


if __name__ == "__main__":
    uvicorn.run(app, host="127.0.0.1", port=8001, reload=True)
