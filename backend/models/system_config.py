from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, func
from database import Base


# Business setting editable by sysadmins at runtime
class SystemConfiguration(Base):
    __tablename__ = "system_configurations"

    id = Column(Integer, primary_key=True, index=True)
    config_key = Column(String(100), unique=True, nullable=False, index=True)
    config_value = Column(Text, nullable=True)
    value_type = Column(String(20), nullable=False, default="string")
    category = Column(String(50), nullable=False, default="general", index=True)
    description = Column(Text, nullable=True)
    updated_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
