from fastapi import FastAPI
from config.logging_config import configure_logging
from config.settings import settings
from infrastructure.db.sqlite import init_db
from infrastructure.gateways.sms_activate import build_sms_gateway
from infrastructure.rates.http_rate_source import build_exchange_rate_cache
from infrastructure.web.controllers.activation_controller import router as activation_router
from infrastructure.web.controllers.admin_controller import router as admin_router
from infrastructure.web.controllers.user_controller import router as user_router
from fastapi.middleware.cors import CORSMiddleware

configure_logging(settings.LOG_LEVEL)

app = FastAPI(title="SMSGlobe ledger")

# от CORS
origins = [
    "http://localhost:5173",
    "http://localhost:8000",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],  # Allows all HTTP methods (GET, POST, PUT, DELETE, etc.)
    allow_headers=["*"],  # Allows all headers
)

app.state.sms_gateway = build_sms_gateway()
app.state.rate_cache = build_exchange_rate_cache()

@app.on_event("startup")
def on_startup():
    init_db(settings.DB_PATH)

@app.on_event("shutdown")
def on_shutdown():
    app.state.sms_gateway.close()

app.include_router(user_router)
app.include_router(activation_router)
app.include_router(admin_router)
