import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from stampcard.clients.user_service import build_counter_sync
from stampcard.config import settings
from stampcard.db import engine, Base

from stampcard.models.brand import Brand
from stampcard.models.business import Business
from stampcard.models.prize import Prize
from stampcard.models.stamp import Stamp
from stampcard.models.coupon import Coupon
from stampcard.models.stamp_card import StampCard

from stampcard.routes.businesses import router as businesses_router
from stampcard.routes.prizes import router as prizes_router
from stampcard.routes.stamps import router as stamps_router
from stampcard.routes.coupons import router as coupons_router
from stampcard.routes.users import router as users_router
from stampcard.routes.analytics import router as analytics_router

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)

app = FastAPI(title="Stampcard Business Service")

# ─── CORS ─────────────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
def startup():
    Base.metadata.create_all(bind=engine)
    app.state.counter_sync = build_counter_sync(settings)


@app.on_event("shutdown")
def shutdown():
    counter_sync = getattr(app.state, "counter_sync", None)
    if counter_sync is not None:
        counter_sync.close()


app.include_router(businesses_router)
app.include_router(prizes_router)
app.include_router(stamps_router)
app.include_router(coupons_router)
app.include_router(users_router)
app.include_router(analytics_router)


@app.get("/")
def read_root():
    return {"message": "Stampcard business service is running"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="127.0.0.1", port=8001)
