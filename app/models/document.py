from sqlalchemy import Column, Integer, String, JSON, DateTime, UniqueConstraint
from sqlalchemy.sql import func
from app.database import Base

class StoredDocument(Base):
    """One JSON record of a collection (employees/{key}, reviews/{key})."""
    __tablename__ = "documents"
    __table_args__ = (
        UniqueConstraint("collection", "key", name="uq_documents_collection_key"),
    )

    id = Column(Integer, primary_key=True, index=True)
    collection = Column(String(32), index=True, nullable=False)
    key = Column(String(255), nullable=False)
    data = Column(JSON, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<StoredDocument {self.collection}/{self.key}>"
