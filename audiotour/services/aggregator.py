# audiotour/services/aggregator.py
# Collects public sources about one subject from three independent providers.

import asyncio
import json
from typing import Iterable, List, Optional

import structlog

from audiotour.core.config import Settings
from audiotour.models.domain import (
    AreaSubject,
    EntityFacts,
    KnowledgeGraphEntity,
    ReverseGeocodeResult,
    SourceDocument,
    Subject,
)
from audiotour.services.encyclopedia import EncyclopediaClient
from audiotour.services.geocoding import GeocodingClient, LANDMARK_ZOOM, osm_url, selected_extratags
from audiotour.services.knowledge_graph import KnowledgeGraphClient, entity_url
from audiotour.utils.timebox import isolate

logger = structlog.get_logger(__name__)

OSM_SOURCE_TITLE = "OpenStreetMap (Nominatim)"


def dedupe_sources(sources: Iterable[SourceDocument]) -> List[SourceDocument]:
    """Drop repeated (title, url) pairs, keeping the first occurrence."""
    seen = set()
    out: List[SourceDocument] = []
    for source in sources:
        if source.key in seen:
            continue
        seen.add(source.key)
        out.append(source)
    return out


class SourceAggregator:
    """Fans out to encyclopedia, geodata and knowledge-graph providers.

    Each channel is isolated: a timeout, error status or missing payload in
    one channel yields an empty contribution and never disturbs the others.
    ``gather_sources`` itself never raises for provider problems.
    """

    def __init__(
        self,
        settings: Settings,
        encyclopedia: Optional[EncyclopediaClient] = None,
        knowledge_graph: Optional[KnowledgeGraphClient] = None,
        geocoding: Optional[GeocodingClient] = None,
    ):
        self.settings = settings
        self.encyclopedia = encyclopedia or EncyclopediaClient(settings)
        self.knowledge_graph = knowledge_graph or KnowledgeGraphClient(settings)
        self.geocoding = geocoding or GeocodingClient(settings)
        # A channel is a search followed by one parallel round of lookups.
        self.channel_timeout = settings.PROVIDER_TIMEOUT_SECONDS * 2

    async def gather_sources(self, subject: Subject) -> List[SourceDocument]:
        query = subject.query
        encyclopedic, geodata, knowledge = await asyncio.gather(
            isolate(self._encyclopedia_sources(query), default=[], label="aggregate.encyclopedia", timeout=self.channel_timeout),
            isolate(self._geodata_sources(subject), default=[], label="aggregate.geodata", timeout=self.channel_timeout),
            isolate(self._knowledge_graph_sources(query), default=[], label="aggregate.knowledge_graph", timeout=self.channel_timeout),
        )
        sources = dedupe_sources([*encyclopedic, *geodata, *knowledge])
        logger.info(
            "sources_gathered",
            query=query,
            encyclopedia=len(encyclopedic),
            geodata=len(geodata),
            knowledge_graph=len(knowledge),
            total=len(sources),
        )
        return sources

    # --- Encyclopedia channel ---

    async def _encyclopedia_sources(self, query: str) -> List[SourceDocument]:
        hits = await self.encyclopedia.search(query, limit=self.settings.ENCYCLOPEDIA_RESULTS)
        summaries = await asyncio.gather(
            *(isolate(self.encyclopedia.summary(hit.title), default=None, label="aggregate.encyclopedia.summary") for hit in hits)
        )

        sources: List[SourceDocument] = []
        for summary in summaries:
            if summary is None:
                continue
            # Pure disambiguation pages are useless unless they still carry some text.
            if summary.is_disambiguation and not summary.extract:
                continue
            if not summary.url:
                continue
            sources.append(SourceDocument(title=summary.title, url=summary.url, excerpt=summary.extract))
        return sources

    # --- Geodata channel ---

    async def _geodata_sources(self, subject: Subject) -> List[SourceDocument]:
        if isinstance(subject, AreaSubject):
            place = subject.area.place
        else:
            place = await self.geocoding.reverse(subject.coordinates, zoom=LANDMARK_ZOOM)
        return [geodata_document(place, subject)]

    # --- Knowledge graph channel ---

    async def _knowledge_graph_sources(self, query: str) -> List[SourceDocument]:
        entities = await self.knowledge_graph.search(query, limit=self.settings.KNOWLEDGE_GRAPH_RESULTS)
        facts = await asyncio.gather(
            *(
                isolate(self.knowledge_graph.facts(entity.id), default=EntityFacts(), label="aggregate.knowledge_graph.facts")
                for entity in entities
            )
        )
        return [knowledge_graph_document(entity, entity_facts) for entity, entity_facts in zip(entities, facts)]


def geodata_document(place: ReverseGeocodeResult, subject: Subject) -> SourceDocument:
    excerpt = {
        "display_name": place.display_name,
        "category": place.category,
        "type": place.type,
        "address": place.address,
        "extratags": selected_extratags(place),
    }
    return SourceDocument(
        title=OSM_SOURCE_TITLE,
        url=osm_url(place, subject.coordinates),
        excerpt=json.dumps(excerpt, ensure_ascii=False),
    )


def knowledge_graph_document(entity: KnowledgeGraphEntity, facts: EntityFacts) -> SourceDocument:
    excerpt = {
        "label": entity.label,
        "description": entity.description,
        "facts": facts.model_dump(exclude_none=True),
    }
    return SourceDocument(
        title=f"Wikidata: {entity.label or entity.id}",
        url=entity_url(entity.id),
        excerpt=json.dumps(excerpt, ensure_ascii=False),
    )
