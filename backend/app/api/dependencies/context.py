from fastapi import Depends
from sqlalchemy.orm import Session
from app.infrastructure.database.session import get_db
from app.domain.services.context import TodoContext


def get_context(db: Session = Depends(get_db)) -> TodoContext:
    return TodoContext(db)
