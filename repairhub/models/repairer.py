from sqlalchemy import JSON, Column, DateTime, Float, Integer, String, Text

from repairhub.models.base import Base


class Repairer(Base):
    """
    'repairers' 테이블 모델 (수리기사 프로필, id = 사용자 id)
    """
    __tablename__ = "repairers"

    id = Column(String(128), primary_key=True)
    display_name = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True)
    phone_number = Column(String(64), nullable=True)
    bio = Column(Text, nullable=True)
    profile_image = Column(Text, nullable=True)
    skills = Column(JSON, nullable=False, default=list)
    categories = Column(JSON, nullable=False, default=list)
    service_area = Column(Float, nullable=False, default=10.0)   # km
    latitude = Column(Float, nullable=True)                      # 위치 미등록이면 매칭 제외
    longitude = Column(Float, nullable=True)
    address = Column(String(512), nullable=True)
    rating = Column(Float, default=0.0)
    review_count = Column(Integer, default=0)
    completed_repairs = Column(Integer, default=0)
    created_at = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(DateTime(timezone=True), nullable=True)
