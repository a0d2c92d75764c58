# 헬스체크 라우터
# - GET /       : 서비스 이름/버전
# - GET /health : 배포 플랫폼 헬스 체크용

from fastapi import APIRouter

from ...core.config import settings

router = APIRouter(tags=["health"])

@router.get("/")
async def root():
    return {"name": settings.APP_NAME, "version": settings.APP_VERSION}

@router.get("/health")
async def health_check():
    return {"status": "UP"}
