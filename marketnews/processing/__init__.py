"""Content processing module."""

from .clustering import Cluster, TopicClusterer, cluster_items, topic_similarity
from .dedupe import DuplicateMatch, ItemDeduplicator, deduplicate_items
from .enrichment import ItemEnricher, QualityRules, enrich_items
from .ranking import ItemRanker, ItemScore, RankingWeights, calculate_relevance, rank_items
from .text_utils import item_signature, jaccard_similarity, text_similarity

__all__ = [
    'enrich_items',
    'ItemEnricher',
    'QualityRules',
    'deduplicate_items',
    'ItemDeduplicator',
    'DuplicateMatch',
    'cluster_items',
    'TopicClusterer',
    'Cluster',
    'topic_similarity',
    'rank_items',
    'ItemRanker',
    'ItemScore',
    'RankingWeights',
    'calculate_relevance',
    'item_signature',
    'jaccard_similarity',
    'text_similarity',
]
