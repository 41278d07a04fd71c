from sqlalchemy import Column, String, DateTime, Boolean, JSON
from sqlalchemy.sql import func
from ..database import Base

class License(Base):
    __tablename__ = "licenses"

    hardware_id = Column(String, primary_key=True, index=True)
    company_profile = Column(JSON, nullable=False, default=dict)  # keyed by client aliases
    expiration_date = Column(DateTime(timezone=True), nullable=True)  # NULL = perpetual
    features = Column(JSON, nullable=False, default=list)
    active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
