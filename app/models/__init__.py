# app/models/__init__.py
from app.models.ranking import Ranking, TasteStatus
from app.models.ranking_history import RankingHistory, HistoryChangeType
