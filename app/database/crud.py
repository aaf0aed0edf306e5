from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from app.database.models import AnalysisReport, BusinessIdea, CacheRecord


# READ – ideas
def get_idea(db: Session, idea_id: int) -> Optional[BusinessIdea]:
    """Return the business-idea row or None."""
    return db.get(BusinessIdea, idea_id)


def list_ideas(db: Session, limit: int = 50, offset: int = 0) -> List[BusinessIdea]:
    return (
        db.query(BusinessIdea)
        .order_by(BusinessIdea.created_at.desc(), BusinessIdea.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )


# CREATE – ideas
def create_idea(db: Session, fields: Dict[str, Any]) -> BusinessIdea:
    idea = BusinessIdea(**fields)
    db.add(idea)
    db.commit()
    db.refresh(idea)
    return idea


# UPDATE – ideas
def update_idea(db: Session, idea_id: int, changes: Dict[str, Any]) -> Optional[BusinessIdea]:
    """Apply only the given columns; returns None when the idea does not exist."""
    idea = get_idea(db, idea_id)
    if not idea:
        return None
    for column, value in changes.items():
        setattr(idea, column, value)
    db.commit()
    db.refresh(idea)
    return idea


# DELETE – ideas
def delete_idea(db: Session, idea_id: int) -> bool:
    idea = get_idea(db, idea_id)
    if not idea:
        return False
    db.delete(idea)
    db.commit()
    return True


# CREATE – analysis reports
def save_analysis_report(
    db: Session,
    idea_id: int,
    report: Dict[str, Any],
    overall_confidence: Optional[int] = None,
    market_size_tam: Optional[str] = None,
) -> AnalysisReport:
    """
    Store a generated CombinedAnalysis and copy its headline numbers onto
    the idea row for list views.
    """
    row = AnalysisReport(idea_id=idea_id, report=report, overall_confidence=overall_confidence)
    db.add(row)
    idea = get_idea(db, idea_id)
    if idea:
        idea.confidence_overall = overall_confidence
        if market_size_tam:
            idea.market_size_tam = market_size_tam
    db.commit()
    db.refresh(row)
    return row


# READ – analysis reports
def get_latest_report(db: Session, idea_id: int) -> Optional[AnalysisReport]:
    return (
        db.query(AnalysisReport)
        .filter(AnalysisReport.idea_id == idea_id)
        .order_by(AnalysisReport.created_at.desc(), AnalysisReport.id.desc())
        .first()
    )


# Agent cache
def get_cache_record(db: Session, key: str) -> Optional[CacheRecord]:
    return db.get(CacheRecord, key)


def upsert_cache_record(db: Session, key: str, value: Any, expires_at: datetime) -> CacheRecord:
    record = get_cache_record(db, key)
    if record is None:
        record = CacheRecord(key=key, value=value, expires_at=expires_at)
        db.add(record)
    else:
        record.value = value
        record.expires_at = expires_at
    db.commit()
    return record


def delete_cache_record(db: Session, key: str) -> None:
    db.query(CacheRecord).filter(CacheRecord.key == key).delete()
    db.commit()


def clear_cache_records(db: Session) -> int:
    deleted = db.query(CacheRecord).delete()
    db.commit()
    return deleted
