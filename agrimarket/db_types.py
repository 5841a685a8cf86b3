"""Database-agnostic type definitions for SQLAlchemy models.

This module provides type definitions that work with both SQLite and PostgreSQL.
"""
from sqlalchemy import Numeric, Uuid

# Native UUID on PostgreSQL, CHAR(32) on SQLite
UUIDType = Uuid

# Monetary amounts: always two decimal places, returned as Decimal
MoneyType = Numeric(12, 2)

# Crop quantities (kg, quintal, ...) allow fractional units
QuantityType = Numeric(10, 2)
