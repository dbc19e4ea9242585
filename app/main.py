from contextlib import asynccontextmanager
from datetime import datetime, timezone
import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.db import create_tables, dispose_engine
from app.services.mercadopago import MercadoPagoConfig

from app.api.routes import health
from app.api.routes import checkout
from app.api.routes import mercadopago_webhooks


def _log(*args):
    ts = datetime.now(timezone.utc).isoformat()
    print(f"[app] {ts}", *args)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if os.getenv("DB_CREATE_TABLES", "0").lower() in ("1", "true", "yes"):
        create_tables()
        _log("tables ensured")

    _log("webhook url configured:", MercadoPagoConfig.from_env().notification_url)

    yield

    dispose_engine()
    _log("database engine disposed")


app = FastAPI(title="Checkout API", lifespan=lifespan)

origins_env = os.getenv("CORS_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173")
origins = [o.strip().rstrip("/") for o in origins_env.split(",") if o.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


app.include_router(health.router, tags=["Health"])
app.include_router(checkout.router, tags=["Checkout"])
app.include_router(mercadopago_webhooks.router, tags=["Mercado Pago Webhooks"])
