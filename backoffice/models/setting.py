from sqlalchemy import Column, String, Text, DateTime, func
from backoffice.database.session import Base


class Setting(Base):
    __tablename__ = "settings_config"

    key = Column(String(150), primary_key=True)
    value = Column(Text, nullable=True)
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now(), nullable=False)
