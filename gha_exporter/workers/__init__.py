from .handoff import HandoffQueue
from .ingestion import IngestionWorker

__all__ = ["HandoffQueue", "IngestionWorker"]
