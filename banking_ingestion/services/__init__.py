"""Ingestion services: duplicate detection and the import pipeline."""

from banking_ingestion.services.duplicate_detector import DuplicateDetector
from banking_ingestion.services.import_service import ImportService

__all__ = ["DuplicateDetector", "ImportService"]
