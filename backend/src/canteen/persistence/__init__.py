"""Persistence layer - table materialization and storage adapters."""

from canteen.persistence.adapter import PersistenceAdapter, Sort
from canteen.persistence.config import DatabaseConfig, create_adapter

__all__ = ["PersistenceAdapter", "Sort", "DatabaseConfig", "create_adapter"]
