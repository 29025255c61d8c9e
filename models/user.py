from models.base_model import Base, BaseModel
from sqlalchemy import Column, String, JSON


class User(BaseModel, Base):
    __tablename__ = "users"
    username = Column(String(60), nullable=False, unique=True, index=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    display_name = Column(String(255), nullable=True)
    password_hash = Column(String(255), nullable=False)
    roles = Column(JSON, nullable=True, default=lambda: ["subscriber"])

    def __repr__(self):
        return f"<User id={self.id} username={self.username}>"
