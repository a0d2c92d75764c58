# FastAPI 진입점
# - 저장소 초기화 (Beanie ODM + MongoDB, 또는 메모리 저장소)
# - 라우터 등록
# - CORS 설정
# - 예외 → HTTP 응답 변환 ({message} 형식 통일)

import logging

from beanie import init_beanie
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from motor.motor_asyncio import AsyncIOMotorClient
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.config import settings
from .core.exceptions import AuthServiceError, ValidationError
from .models.otp import OtpCodeDocument
from .models.user import UserDocument
from .repositories.memory_store import InMemoryCredentialStore
from .repositories.mongo_store import MongoCredentialStore
from .api.v1.auth import router as auth_router
from .api.v1.health import router as health_router

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)
logging.getLogger("pymongo").setLevel(logging.WARNING)

# FastAPI 애플리케이션 인스턴스 생성
app = FastAPI(
    title=settings.APP_NAME,
    description="GoQuote 회원가입/로그인/인증 코드 API",
    version=settings.APP_VERSION,
)

# CORS 허용 도메인 세팅
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins or ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# 저장소 초기화 (앱 시작 시 1회)
@app.on_event("startup")
async def app_init():
    if settings.expose_debug_otp:
        logger.warning("ENV=%s: OTP codes are returned in API responses (debugOtpCode)", settings.ENV)

    if settings.STORE_BACKEND == "memory":
        app.state.store = InMemoryCredentialStore(settings)
        logger.warning("Using in-memory credential store; data is lost on restart")
        return

    # tz_aware=True: 만료 시각 비교를 위해 UTC aware datetime 으로 읽어옵니다
    client = AsyncIOMotorClient(settings.MONGODB_URI, serverSelectionTimeoutMS=5000, tz_aware=True)
    try:
        await client.admin.command("ping")
    except Exception:
        logger.exception("MongoDB connection failed: %s", settings.MONGODB_URI)
        raise
    await init_beanie(database=client.get_default_database(), document_models=[UserDocument, OtpCodeDocument])
    app.state.mongo_client = client
    app.state.store = MongoCredentialStore(client, settings)
    logger.info("MongoDB connected: %s", settings.MONGODB_URI)

@app.on_event("shutdown")
async def app_shutdown():
    client = getattr(app.state, "mongo_client", None)
    if client is not None:
        client.close()

# ---- 예외 처리 ----

@app.exception_handler(AuthServiceError)
async def auth_error_handler(request: Request, exc: AuthServiceError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=500, content={"message": "Internal server error"})
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    error = ValidationError.from_errors(exc.errors())
    return JSONResponse(status_code=error.status_code, content=error.to_dict())

@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"message": str(exc.detail)}, headers=exc.headers)

@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"message": "Internal server error"})

# 라우터 등록
app.include_router(health_router)
app.include_router(auth_router, prefix="/api")
