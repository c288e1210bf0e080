import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI

from repairhub.apis.geo import router as geo_router
from repairhub.apis.payments import router as payments_router
from repairhub.apis.repairers import router as repairers_router
from repairhub.apis.requests import router as requests_router
from repairhub.database import engine
from repairhub.models import repairer  # noqa: F401  (테이블 메타데이터 등록)
from repairhub.models.base import Base
from repairhub.repositories.dynamodb_repository import get_tables
from repairhub.utils.config import get_settings

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    Base.metadata.create_all(bind=engine)
    if get_settings().dynamodb_create_tables:
        get_tables()  # 테이블 생성 포함
    logger.info(f"RepairHub API 시작 (env={get_settings().app_env})")
    yield


app = FastAPI(title="RepairHub API", lifespan=lifespan)

# 라우터 등록
app.include_router(requests_router)
app.include_router(repairers_router)
app.include_router(payments_router)
app.include_router(geo_router)
