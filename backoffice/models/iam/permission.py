from sqlalchemy import Column, Integer, String, DateTime, func
from backoffice.database.session import Base

class Permission(Base):
    __tablename__ = "permissions"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(150), nullable=False, unique=True)  # module.resource.action
    description = Column(String(255))
    created_at = Column(DateTime, default=func.now(), nullable=False)
