"""Ranking and feed composition services."""

from recommendation_engine.services.aggregator import RecommendationAggregator
from recommendation_engine.services.personalization import PersonalizationEngine
from recommendation_engine.services.popularity import PopularityIndex
from recommendation_engine.services.scoring import ScoreWeights, calculate_popularity_score
from recommendation_engine.services.similarity import SimilarityMatcher
from recommendation_engine.services.trending import TrendingDetector

__all__ = [
    "PersonalizationEngine",
    "PopularityIndex",
    "RecommendationAggregator",
    "ScoreWeights",
    "SimilarityMatcher",
    "TrendingDetector",
    "calculate_popularity_score",
]
