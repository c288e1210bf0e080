from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from repairhub.models.repairer import Repairer
from repairhub.schemas.domain import RepairerProfile


class RepairerRepository:
    """
    수리기사 프로필 접근 레포지토리 (PostgreSQL / SQLite)
    """
    def __init__(self, db: Session):
        self.db = db

    def fetch_all(self) -> List[RepairerProfile]:
        rows = self.db.query(Repairer).order_by(Repairer.created_at, Repairer.id).all()
        return [RepairerProfile.from_row(r) for r in rows]

    def get(self, repairer_id: str) -> Optional[RepairerProfile]:
        row = self.db.query(Repairer).filter(Repairer.id == repairer_id).first()
        return RepairerProfile.from_row(row) if row else None

    def save(self, repairer_id: str, values: Dict[str, Any]) -> RepairerProfile:
        """
        프로필 생성 또는 부분 업데이트. 집계 카운터는 생성 시 0으로 시작.
        """
        now = datetime.now(timezone.utc)
        row = self.db.query(Repairer).filter(Repairer.id == repairer_id).first()
        if row is None:
            row = Repairer(
                id=repairer_id,
                rating=0.0,
                review_count=0,
                completed_repairs=0,
                created_at=now,
            )
            self.db.add(row)
        for key, value in values.items():
            setattr(row, key, value)
        row.updated_at = now
        self.db.commit()
        self.db.refresh(row)
        return RepairerProfile.from_row(row)
