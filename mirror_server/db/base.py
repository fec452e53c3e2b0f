"""Declarative base for the mirror server models."""

from sqlalchemy.orm import declarative_base

Base = declarative_base()
