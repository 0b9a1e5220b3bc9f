# webapp/main.py
import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv

load_dotenv()

from config import settings

# Logging: root level from settings, module loggers propagate to it
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)

# Routers
from routes.shop import router as shop_router
from routes.cart import router as cart_router
from routes.vendor_orders import router as vendor_orders_router
from routes.admin import router as admin_router
from routes.stats import router as stats_router

app = FastAPI(title="Shortlet Marketplace Web", version="1.0.0")

# CORS Configuration
origins = list(settings.CORS_ORIGINS)
if settings.FRONTEND_URL and settings.FRONTEND_URL not in origins:
    origins.append(settings.FRONTEND_URL)

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Router registration
app.include_router(shop_router)
app.include_router(cart_router)
app.include_router(vendor_orders_router)
app.include_router(admin_router)
app.include_router(stats_router)

@app.get("/")
def read_root():
    return {"message": "Shortlet marketplace web is running"}
