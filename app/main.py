from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.v1 import index
from app.api.v1 import orders
from app.api.v1 import conversations
from app.api.v1 import complaints
from app.api.v1 import products
from app.api.v1 import ws

from app.core.config import settings
from app.core.exceptions import DomainError, domain_error_handler
from app.core.logging import setup_logging
from app.db.core import init_db
from app.realtime.hub import hub

setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    await hub.start()
    yield
    await hub.stop()


app = FastAPI(title=settings.app_name, lifespan=lifespan)

# Middlewares
origins = []

if settings.allowed_hosts:
    origins = settings.allowed_hosts.split(",")

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(DomainError, domain_error_handler)

# Register routes
app.include_router(index.router, prefix="/api/v1")
app.include_router(orders.router, prefix="/api/v1", tags=["Orders"])
app.include_router(conversations.consumer_router,
                   prefix="/api/v1/consumer", tags=["Chat"])
app.include_router(conversations.supplier_router,
                   prefix="/api/v1/supplier", tags=["Chat"])
app.include_router(complaints.router,
                   prefix="/api/v1/supplier/complaints", tags=["Complaints"])
app.include_router(products.router,
                   prefix="/api/v1/supplier/products", tags=["Products"])
app.include_router(ws.router, prefix="/api/v1", tags=["Realtime"])

if __name__ == "__main__":
    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_config=None,
        log_level=None,
    )
