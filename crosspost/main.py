# crosspost/main.py
import os
import uvicorn
from fastapi import FastAPI
from crosspost.routers.platforms_router import auth_router, connections_router
from crosspost.routers.post_router import router as post_router
from crosspost.routers.user_router import router as user_router
from crosspost.routers.webhook_router import router as webhook_router
from crosspost.infrastructure.database import init_db
from crosspost.middleware.logging import RequestIdMiddleware
import structlog


def configure_structlog():
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer()
        ],
        context_class=dict,
    )


configure_structlog()
logger = structlog.get_logger()

app = FastAPI(title="Crosspost")

app.add_middleware(RequestIdMiddleware)

app.include_router(auth_router)
app.include_router(connections_router)
app.include_router(user_router)
app.include_router(post_router)
app.include_router(webhook_router)


@app.on_event("startup")
async def on_startup():
    await init_db()
    logger.info("app_startup")


if __name__ == "__main__":
    uvicorn.run("crosspost.main:app", host="0.0.0.0", port=int(os.getenv("PORT", 8000)), reload=True)
