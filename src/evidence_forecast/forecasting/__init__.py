"""Evidence aggregation and critique-driven refinement for binary forecasts."""

from evidence_forecast.forecasting.aggregate import PosteriorResult, aggregate_posterior
from evidence_forecast.forecasting.clusters import build_clusters
from evidence_forecast.forecasting.controller import CritiqueController, default_critique
from evidence_forecast.forecasting.influence import compute_influence
from evidence_forecast.forecasting.schemas import (
    ClusterMeta,
    Critique,
    Evidence,
    EvidenceType,
    FollowUpSearch,
    ForecastSnapshot,
    InfluenceItem,
    MarketReference,
    SearchSide,
    VerificationReport,
)
from evidence_forecast.forecasting.session_store import ForecastSessionStore
from evidence_forecast.forecasting.state import ForecastState, SessionPhase
from evidence_forecast.forecasting.store import EvidencePartition, EvidenceStore
from evidence_forecast.forecasting.verify import verify_forecast

__all__ = [
    "ClusterMeta",
    "Critique",
    "CritiqueController",
    "Evidence",
    "EvidencePartition",
    "EvidenceStore",
    "EvidenceType",
    "FollowUpSearch",
    "ForecastSessionStore",
    "ForecastSnapshot",
    "ForecastState",
    "InfluenceItem",
    "MarketReference",
    "PosteriorResult",
    "SearchSide",
    "SessionPhase",
    "VerificationReport",
    "aggregate_posterior",
    "build_clusters",
    "compute_influence",
    "default_critique",
    "verify_forecast",
]
