"""Insight producers and the analysis-cycle orchestrator."""

from src.insights.orchestrator import InsightOrchestrator, alert_from_insight
from src.insights.producer import InsightProducer, StaticInsightProducer

__all__ = [
    "InsightOrchestrator",
    "InsightProducer",
    "StaticInsightProducer",
    "alert_from_insight",
]
