from sqlalchemy import Column, String, DateTime, Text, JSON

from defensehub.core.database import Base
from defensehub.core.types import GUID, generate_uuid, utcnow


class SystemSetting(Base):
    """System settings for admin configuration"""
    __tablename__ = "system_settings"

    id = Column(GUID, primary_key=True, default=generate_uuid)

    # Setting key (unique identifier)
    key = Column(String(100), unique=True, nullable=False, index=True)

    # Setting value (stored as JSON for flexibility)
    value = Column(JSON, nullable=False)

    # Metadata
    description = Column(Text, nullable=True)
    category = Column(String(50), nullable=True)  # 'features', 'limits'

    # Audit trail
    updated_by = Column(String(36), nullable=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    def __repr__(self):
        return f"<SystemSetting {self.key}>"
