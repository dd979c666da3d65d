# models/submission.py
from sqlalchemy import Column, Date, DateTime, Boolean, ForeignKey, Index
from sqlalchemy.dialects.postgresql import UUID
from uuid import uuid4
from datetime import datetime
from scorecard.db.base_class import Base, JSONType

class Submission(Base):
    __tablename__ = "submissions"

    submission_id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    form_template_id = Column(UUID(as_uuid=True), ForeignKey("form_templates.form_template_id"), nullable=False)
    team_member_id = Column(UUID(as_uuid=True), ForeignKey("team_members.team_member_id"), nullable=False)
    submission_date = Column(Date, nullable=False)
    work_date = Column(Date, nullable=True)
    payload_json = Column(JSONType, nullable=False, default=dict)
    late = Column(Boolean, nullable=False, default=False)
    final = Column(Boolean, nullable=False, default=False)
    supersedes_id = Column(UUID(as_uuid=True), ForeignKey("submissions.submission_id"), nullable=True)
    superseded_at = Column(DateTime, nullable=True)
    metric_id = Column(UUID(as_uuid=True), nullable=True)  # last DailyMetric this produced
    submitted_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    processed_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index("idx_submissions_member_date", "team_member_id", "work_date"),
        Index("idx_submissions_form", "form_template_id"),
    )

    @property
    def effective_date(self):
        return self.work_date or self.submission_date
