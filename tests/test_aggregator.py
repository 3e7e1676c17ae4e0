import json

import httpx
import pytest

from audiotour.core.errors import ProviderError
from audiotour.models.domain import (
    AreaSubject,
    EncyclopediaHit,
    EncyclopediaSummary,
    EntityFacts,
    KnowledgeGraphEntity,
    LandmarkSubject,
    SourceDocument,
)
from audiotour.services.aggregator import OSM_SOURCE_TITLE, SourceAggregator, dedupe_sources
from audiotour.services.encyclopedia import EncyclopediaClient
from audiotour.services.knowledge_graph import KnowledgeGraphClient

from conftest import (
    ROME,
    FakeEncyclopedia,
    FakeGeocoding,
    FakeKnowledgeGraph,
    make_landmark,
    rome_place,
    trastevere_area,
)


def colosseum_encyclopedia(**kwargs):
    return FakeEncyclopedia(
        hits=[
            EncyclopediaHit(title="Colosseum"),
            EncyclopediaHit(title="Colosseum (disambiguation)"),
            EncyclopediaHit(title="Flavian dynasty"),
        ],
        summaries={
            "Colosseum": EncyclopediaSummary(
                title="Colosseum",
                url="https://en.wikipedia.org/wiki/Colosseum",
                extract="The Colosseum is an elliptical amphitheatre in the centre of Rome.",
            ),
            "Colosseum (disambiguation)": EncyclopediaSummary(
                title="Colosseum (disambiguation)",
                url="https://en.wikipedia.org/wiki/Colosseum_(disambiguation)",
                is_disambiguation=True,
            ),
            # no canonical url
            "Flavian dynasty": EncyclopediaSummary(title="Flavian dynasty", extract="Roman imperial dynasty."),
        },
        **kwargs,
    )


def colosseum_knowledge_graph(**kwargs):
    return FakeKnowledgeGraph(
        entities=[
            KnowledgeGraphEntity(id="Q10285", label="Colosseum", description="amphitheatre in Rome"),
            KnowledgeGraphEntity(id="Q1", label=None),
        ],
        facts={"Q10285": EntityFacts(inception="0080-01-01T00:00:00Z", country="Italy")},
        **kwargs,
    )


def test_dedupe_keeps_first_occurrence():
    first = SourceDocument(title="A", url="https://a", excerpt="first")
    again = SourceDocument(title="A", url="https://a", excerpt="second")
    other_url = SourceDocument(title="A", url="https://b")

    assert dedupe_sources([first, again, other_url]) == [first, other_url]


@pytest.mark.asyncio
async def test_gathers_all_channels_in_order(settings):
    aggregator = SourceAggregator(
        settings,
        colosseum_encyclopedia(),
        colosseum_knowledge_graph(),
        FakeGeocoding(place=rome_place(wikipedia="en:Colosseum", opening_hours="8:30-19:15")),
    )

    sources = await aggregator.gather_sources(LandmarkSubject(landmark=make_landmark()))

    assert [s.title for s in sources] == [
        "Colosseum",
        OSM_SOURCE_TITLE,
        "Wikidata: Colosseum",
        "Wikidata: Q1",
    ]
    assert sources[1].url == "https://www.openstreetmap.org/way/27315936"
    assert sources[2].url == "https://www.wikidata.org/wiki/Q10285"

    geodata = json.loads(sources[1].excerpt)
    assert geodata["extratags"] == {"wikipedia": "en:Colosseum"}

    knowledge = json.loads(sources[2].excerpt)
    assert knowledge["facts"] == {"inception": "0080-01-01T00:00:00Z", "country": "Italy"}


@pytest.mark.asyncio
async def test_disambiguation_with_text_is_kept(settings):
    encyclopedia = FakeEncyclopedia(
        hits=[EncyclopediaHit(title="Pantheon")],
        summaries={
            "Pantheon": EncyclopediaSummary(
                title="Pantheon",
                url="https://en.wikipedia.org/wiki/Pantheon",
                extract="Pantheon may refer to several temples.",
                is_disambiguation=True,
            )
        },
    )
    aggregator = SourceAggregator(settings, encyclopedia, FakeKnowledgeGraph(), FakeGeocoding())

    sources = await aggregator.gather_sources(LandmarkSubject(landmark=make_landmark(name="Pantheon")))

    assert sources[0].title == "Pantheon"


@pytest.mark.asyncio
async def test_duplicate_entities_are_collapsed(settings):
    entity = KnowledgeGraphEntity(id="Q10285", label="Colosseum")
    aggregator = SourceAggregator(
        settings,
        FakeEncyclopedia(),
        FakeKnowledgeGraph(entities=[entity, entity]),
        FakeGeocoding(error=ProviderError("nominatim", "HTTP 500", status_code=500)),
    )

    sources = await aggregator.gather_sources(LandmarkSubject(landmark=make_landmark()))

    assert [s.key for s in sources] == [("Wikidata: Colosseum", "https://www.wikidata.org/wiki/Q10285")]


@pytest.mark.asyncio
async def test_timed_out_channel_does_not_affect_others(settings):
    settings.PROVIDER_TIMEOUT_SECONDS = 0.05
    aggregator = SourceAggregator(
        settings,
        colosseum_encyclopedia(delay=1),
        colosseum_knowledge_graph(),
        FakeGeocoding(place=rome_place()),
    )

    sources = await aggregator.gather_sources(LandmarkSubject(landmark=make_landmark()))

    assert [s.title for s in sources] == [OSM_SOURCE_TITLE, "Wikidata: Colosseum", "Wikidata: Q1"]


@pytest.mark.asyncio
async def test_all_channels_failing_yields_empty_list(settings):
    error = ProviderError("test", "HTTP 503", status_code=503)
    aggregator = SourceAggregator(
        settings,
        FakeEncyclopedia(error=error),
        FakeKnowledgeGraph(error=error),
        FakeGeocoding(error=error),
    )

    assert await aggregator.gather_sources(LandmarkSubject(landmark=make_landmark())) == []


@pytest.mark.asyncio
async def test_area_subject_reuses_resolved_place(settings):
    encyclopedia = FakeEncyclopedia()
    knowledge_graph = FakeKnowledgeGraph()
    geocoding = FakeGeocoding()
    aggregator = SourceAggregator(settings, encyclopedia, knowledge_graph, geocoding)

    sources = await aggregator.gather_sources(AreaSubject(coordinates=ROME, area=trastevere_area()))

    assert geocoding.calls == []
    assert encyclopedia.queries == ["Trastevere, Rome"]
    assert knowledge_graph.queries == ["Trastevere, Rome"]
    assert [s.url for s in sources] == ["https://www.openstreetmap.org/relation/123"]


def wikidata_reply(request: httpx.Request) -> httpx.Response:
    if request.url.params.get("action") == "wbsearchentities":
        return httpx.Response(200, json={"search": [{"id": 42}, {"id": "Q10285", "label": "Colosseum"}]})
    return httpx.Response(200, json={"results": {"bindings": {}}})


@pytest.mark.asyncio
async def test_malformed_encyclopedia_reply_keeps_other_channels(settings):
    encyclopedia = EncyclopediaClient(
        settings, transport=httpx.MockTransport(lambda request: httpx.Response(200, json={"query": ["unexpected"]}))
    )
    aggregator = SourceAggregator(settings, encyclopedia, colosseum_knowledge_graph(), FakeGeocoding(place=rome_place()))

    sources = await aggregator.gather_sources(LandmarkSubject(landmark=make_landmark()))

    assert [s.title for s in sources] == [OSM_SOURCE_TITLE, "Wikidata: Colosseum", "Wikidata: Q1"]


@pytest.mark.asyncio
async def test_malformed_knowledge_graph_reply_keeps_other_channels(settings):
    knowledge_graph = KnowledgeGraphClient(settings, transport=httpx.MockTransport(wikidata_reply))
    aggregator = SourceAggregator(settings, colosseum_encyclopedia(), knowledge_graph, FakeGeocoding(place=rome_place()))

    sources = await aggregator.gather_sources(LandmarkSubject(landmark=make_landmark()))

    # the entity without a string id is dropped and the unreadable facts reply leaves Q10285 bare
    assert [s.title for s in sources] == ["Colosseum", OSM_SOURCE_TITLE, "Wikidata: Colosseum"]
    assert json.loads(sources[2].excerpt)["facts"] == {}
