from sqlalchemy import Column, Integer, String, DateTime

from forumcore.database import Base

class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, unique=True, index=True, nullable=False)
    password = Column(String, nullable=True)  # hash, managed by the account service
    role = Column(String, default="GENERAL")  # GENERAL or ADMIN
    email = Column(String, unique=True, index=True, nullable=True)
    avatar = Column(String, nullable=True)  # blob-store URL

    registered_at = Column(DateTime(timezone=True), nullable=True)
