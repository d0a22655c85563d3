from __future__ import annotations

from fastapi import HTTPException, status

from promotracker.db.session import SessionLocal
from promotracker.engine.errors import NotFoundError


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def not_found(exc: NotFoundError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc) or "Not found")
