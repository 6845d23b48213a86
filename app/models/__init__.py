from app.models.history_entry import HistoryEntry

__all__ = ["HistoryEntry"]
