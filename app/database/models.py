import datetime

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship

from app.database.database import Base

# JSONB on PostgreSQL, plain JSON everywhere else (SQLite in dev and tests).
JSONType = JSON().with_variant(JSONB(), "postgresql")


def _utcnow():
    return datetime.datetime.now(datetime.timezone.utc)


class BusinessIdea(Base):
    """A business idea submitted for analysis."""

    __tablename__ = "business_ideas"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    category = Column(String(100), nullable=False, index=True)
    tier = Column(String(20), nullable=False, default="public")

    target_market = Column(String(255))
    business_model = Column(String(255))

    # Denormalised from the latest analysis for list views
    confidence_overall = Column(Integer)
    market_size_tam = Column(String(50))

    # Free-form extras: user context, founder background, tags
    idea_data = Column(JSONType)

    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)

    reports = relationship(
        "AnalysisReport",
        back_populates="idea",
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<BusinessIdea id={self.id} title={self.title!r}>"


class AnalysisReport(Base):
    """A persisted CombinedAnalysis, newest row wins."""

    __tablename__ = "analysis_reports"

    id = Column(Integer, primary_key=True, index=True)
    idea_id = Column(Integer, ForeignKey("business_ideas.id", ondelete="CASCADE"), nullable=False, index=True)
    report = Column(JSONType, nullable=False)
    overall_confidence = Column(Integer)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    idea = relationship("BusinessIdea", back_populates="reports")

    def __repr__(self):
        return f"<AnalysisReport id={self.id} idea_id={self.idea_id}>"


class CacheRecord(Base):
    """Agent output cache entry (see DatabaseCacheProvider)."""

    __tablename__ = "agent_cache"

    key = Column(String(255), primary_key=True)
    value = Column(JSONType, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)

    def __repr__(self):
        return f"<CacheRecord key={self.key} expires_at={self.expires_at}>"
