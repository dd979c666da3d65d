# models/household.py
from sqlalchemy import Column, Date, DateTime, String, Text, Integer, BigInteger, Boolean, ForeignKey, CheckConstraint, UniqueConstraint, Index
from sqlalchemy.dialects.postgresql import UUID
from uuid import uuid4
from datetime import datetime
from scorecard.db.base_class import Base

HOUSEHOLD_STATUSES = ("lead", "quoted", "sold")
QUOTE_SOURCES = ("allstate_report", "scorecard", "manual", "bulk_upload", "call_center")
SALE_SOURCES = ("sales_dashboard", "scorecard", "manual", "call_center")


class Household(Base):
    __tablename__ = "households"

    household_id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    agency_id = Column(UUID(as_uuid=True), nullable=False)
    household_key = Column(String(255), nullable=False)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    zip_code = Column(String(10), nullable=True)
    phone = Column(String(30), nullable=True)
    email = Column(String(255), nullable=True)
    status = Column(String(10), nullable=False, default="lead")
    lead_received_date = Column(Date, nullable=True)
    first_quote_date = Column(Date, nullable=True)
    sold_date = Column(Date, nullable=True)
    team_member_id = Column(UUID(as_uuid=True), nullable=True)
    lead_source_id = Column(UUID(as_uuid=True), nullable=True)
    needs_attention = Column(Boolean, nullable=False, default=False)
    notes = Column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint("agency_id", "household_key", name="uq_household_agency_key"),
        CheckConstraint("status IN ('lead','quoted','sold')", name="chk_household_status"),
        Index("idx_households_agency_status", "agency_id", "status"),
        Index("idx_households_member", "team_member_id"),
    )


class HouseholdQuote(Base):
    __tablename__ = "household_quotes"

    quote_id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    agency_id = Column(UUID(as_uuid=True), nullable=False)
    household_id = Column(UUID(as_uuid=True), ForeignKey("households.household_id", ondelete="CASCADE"), nullable=False)
    team_member_id = Column(UUID(as_uuid=True), nullable=True)
    quote_date = Column(Date, nullable=False)
    product_type = Column(String(100), nullable=False)
    items_quoted = Column(Integer, nullable=False, default=1)
    premium_cents = Column(BigInteger, nullable=False, default=0)
    source = Column(String(30), nullable=False)
    source_reference_id = Column(String(100), nullable=True)

    __table_args__ = (
        CheckConstraint(
            "source IN ('allstate_report','scorecard','manual','bulk_upload','call_center')",
            name="chk_household_quote_source",
        ),
        Index("idx_household_quotes_household", "household_id"),
        Index("idx_household_quotes_dedup", "household_id", "source", "quote_date", "product_type"),
    )


class HouseholdSale(Base):
    __tablename__ = "household_sales"

    sale_id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    agency_id = Column(UUID(as_uuid=True), nullable=False)
    household_id = Column(UUID(as_uuid=True), ForeignKey("households.household_id", ondelete="CASCADE"), nullable=False)
    team_member_id = Column(UUID(as_uuid=True), nullable=True)
    sale_date = Column(Date, nullable=False)
    product_type = Column(String(100), nullable=False)
    items_sold = Column(Integer, nullable=False, default=1)
    policies_sold = Column(Integer, nullable=False, default=1)
    premium_cents = Column(BigInteger, nullable=False, default=0)
    policy_number = Column(String(50), nullable=True)
    source = Column(String(30), nullable=False)
    source_reference_id = Column(String(100), nullable=True)
    linked_quote_id = Column(UUID(as_uuid=True), ForeignKey("household_quotes.quote_id", ondelete="SET NULL"), nullable=True)

    __table_args__ = (
        CheckConstraint(
            "source IN ('sales_dashboard','scorecard','manual','call_center')",
            name="chk_household_sale_source",
        ),
        Index("idx_household_sales_household", "household_id"),
    )


class HouseholdStatusChange(Base):
    __tablename__ = "household_status_changes"

    change_id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    household_id = Column(UUID(as_uuid=True), ForeignKey("households.household_id", ondelete="CASCADE"), nullable=False)
    previous_status = Column(String(10), nullable=True)
    new_status = Column(String(10), nullable=False)
    reason = Column(String(50), nullable=False)   # quote_fact, sale_fact, winback, renewal, correction, reconciliation
    changed_by = Column(UUID(as_uuid=True), nullable=True)
    changed_at = Column(DateTime, default=datetime.utcnow)
    notes = Column(Text, nullable=True)

    __table_args__ = (
        Index("idx_status_changes_household", "household_id"),
        Index("idx_status_changes_time", "changed_at"),
    )
