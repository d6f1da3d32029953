# Fichier: backend/app/db/base_class.py
from sqlalchemy.orm import DeclarativeBase

class Base(DeclarativeBase):
    """
    Declarative base shared by every catalog model.
    ``app.db.base`` imports the models so ``Base.metadata`` sees all tables.
    """
