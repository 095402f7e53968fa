"""SQLAlchemy ORM models for the screening and watchlist tables.

The screening tables are written by the external workflow; this application
only reads them. ``user_watchlists`` backs the watchlist procedures.
"""

import datetime
import uuid

from sqlalchemy import (
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.types import JSON

from .database import Base


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class ScreeningSession(Base):
    """One screening run submitted by a user."""

    __tablename__ = "user_screening_sessions"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_email = Column(String, nullable=False, index=True)
    status = Column(String, nullable=False, default="pending")
    screening_type = Column(String, nullable=True)
    filters = Column(JSON, nullable=True)
    # Workflow diagnostics, including failure details
    session_data = Column(JSON, nullable=True)

    total_stocks_screened = Column(Integer, nullable=True)
    total_buy_rated = Column(Integer, nullable=True)
    buy_percentage = Column(Float, nullable=True)
    average_score = Column(Float, nullable=True)
    average_buy_score = Column(Float, nullable=True)
    processing_time_seconds = Column(Float, nullable=True)

    created_at = Column(DateTime, default=_utcnow, nullable=False, index=True)
    completed_at = Column(DateTime, nullable=True)

    results = relationship("ScreeningResult", back_populates="session")

    def __repr__(self):
        return f"<ScreeningSession(id='{self.id}', status='{self.status}')>"


class StockUniverse(Base):
    """Reference data for every symbol the workflow can screen."""

    __tablename__ = "stock_universe"

    symbol = Column(String, primary_key=True)
    name = Column(String, nullable=True)
    sector = Column(String, nullable=True)
    market_cap_tier = Column(String, nullable=True)

    def __repr__(self):
        return f"<StockUniverse(symbol='{self.symbol}')>"


class ScreeningResult(Base):
    """One scored stock within a screening session."""

    __tablename__ = "screening_results"

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(
        String, ForeignKey("user_screening_sessions.id"), nullable=False, index=True
    )
    symbol = Column(String, ForeignKey("stock_universe.symbol"), nullable=False)

    score = Column(Float, nullable=False)
    rating = Column(String, nullable=False)
    price = Column(Float, nullable=True)
    change_percent = Column(Float, nullable=True)
    rank_position = Column(Integer, nullable=True)
    score_breakdown = Column(JSON, nullable=True)
    signal_strength = Column(String, nullable=True)

    # Enrichment fields
    market_cap = Column(Float, nullable=True)
    pe_ratio = Column(Float, nullable=True)
    forward_pe = Column(Float, nullable=True)
    beta = Column(Float, nullable=True)
    day_high = Column(Float, nullable=True)
    day_low = Column(Float, nullable=True)
    week_52_high = Column(Float, nullable=True)
    week_52_low = Column(Float, nullable=True)
    distance_from_52_high = Column(String, nullable=True)
    volume = Column(Float, nullable=True)
    avg_volume = Column(Float, nullable=True)
    relative_volume = Column(Float, nullable=True)
    eps_growth = Column(Float, nullable=True)
    revenue_growth = Column(Float, nullable=True)
    roe = Column(Float, nullable=True)
    operating_margin = Column(Float, nullable=True)
    debt_to_equity = Column(Float, nullable=True)
    ytd_return = Column(Float, nullable=True)
    mtd_return = Column(Float, nullable=True)
    price_relative_4w = Column(Float, nullable=True)
    price_relative_13w = Column(Float, nullable=True)

    technicals = Column(JSON, nullable=True)
    signals = Column(JSON, nullable=True)
    insights = Column(JSON, nullable=True)
    recommendations = Column(JSON, nullable=True)

    created_at = Column(DateTime, default=_utcnow, nullable=False)

    session = relationship("ScreeningSession", back_populates="results")
    stock = relationship("StockUniverse")

    def __repr__(self):
        return (
            f"<ScreeningResult(session_id='{self.session_id}', "
            f"symbol='{self.symbol}', score={self.score})>"
        )


class WatchlistEntry(Base):
    """A symbol saved by a user."""

    __tablename__ = "user_watchlists"
    __table_args__ = (
        UniqueConstraint("user_email", "symbol", name="uq_watchlist_user_symbol"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_email = Column(String, nullable=False, index=True)
    symbol = Column(String, nullable=False)
    notes = Column(Text, nullable=True)
    added_at = Column(DateTime, default=_utcnow, nullable=False)

    def __repr__(self):
        return f"<WatchlistEntry(user_email='{self.user_email}', symbol='{self.symbol}')>"
