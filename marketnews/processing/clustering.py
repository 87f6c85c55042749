"""
Greedy single-pass topic clustering.

Each item is compared with the first member (the representative) of every
existing cluster and joins the most similar one above the threshold, or
starts a new cluster. Clusters are never merged or split within a run, and
cluster ids only mean something inside the run that produced them.
"""

from dataclasses import dataclass, field

from ..config import Settings, get_settings
from ..logging import get_logger, log_processing_stage
from ..models import EnrichedItem
from .text_utils import text_similarity

logger = get_logger(__name__)

MAX_SIMILAR_ITEMS = 3


@dataclass
class TopicWeights:
    """Weights of the topic similarity components."""
    ticker_overlap: float = 0.3
    company_overlap: float = 0.3
    title_similarity: float = 0.4


@dataclass
class Cluster:
    """Items grouped under one representative."""
    id: str
    members: list[EnrichedItem] = field(default_factory=list)

    @property
    def representative(self) -> EnrichedItem:
        return self.members[0]


def topic_similarity(item1: EnrichedItem, item2: EnrichedItem,
                     weights: TopicWeights | None = None) -> float:
    """Similarity from shared tickers, shared companies and title overlap.

    Overlaps are raw counts, so the result is not bounded by 1.
    """
    weights = weights or TopicWeights()
    ticker_overlap = len(set(item1.entities.tickers) & set(item2.entities.tickers))
    company_overlap = len(set(item1.entities.companies) & set(item2.entities.companies))
    title_sim = text_similarity(item1.title.lower(), item2.title.lower())

    return (
        ticker_overlap * weights.ticker_overlap
        + company_overlap * weights.company_overlap
        + title_sim * weights.title_similarity
    )


class TopicClusterer:
    """Assigns cluster ids and similar-item links to deduplicated items."""

    def __init__(self, settings: Settings | None = None, weights: TopicWeights | None = None):
        settings = settings or get_settings()
        self.threshold = settings.cluster_threshold
        self.weights = weights or TopicWeights()

    def _best_cluster(self, item: EnrichedItem, clusters: list[Cluster]) -> Cluster | None:
        best_cluster = None
        best_similarity = 0.0
        for cluster in clusters:
            similarity = topic_similarity(item, cluster.representative, self.weights)
            if similarity > best_similarity and similarity > self.threshold:
                best_similarity = similarity
                best_cluster = cluster
        return best_cluster

    def cluster(self, items: list[EnrichedItem]) -> list[Cluster]:
        """Cluster items in place and return the clusters in creation order."""
        clusters: list[Cluster] = []

        for item in items:
            cluster = self._best_cluster(item, clusters)
            if cluster is None:
                cluster = Cluster(id=f"cluster-{len(clusters)}")
                clusters.append(cluster)
            cluster.members.append(item)
            item.cluster_id = cluster.id

        for cluster in clusters:
            for item in cluster.members:
                item.similar_item_ids = [
                    other.id for other in cluster.members if other.id != item.id
                ][:MAX_SIMILAR_ITEMS]

        logger.info(
            **log_processing_stage(
                stage="clustering",
                input_count=len(items),
                output_count=len(clusters),
                multi_item_clusters=sum(1 for c in clusters if len(c.members) > 1),
            )
        )
        return clusters


def cluster_items(items: list[EnrichedItem], settings: Settings | None = None) -> list[EnrichedItem]:
    """Convenience function: cluster in place and return the same list."""
    TopicClusterer(settings).cluster(items)
    return items
