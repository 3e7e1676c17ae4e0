# audiotour/services/knowledge_graph.py
# Wikidata entity search and a small fixed set of SPARQL facts per entity.

import re
from typing import Any, Dict, List, Optional

from audiotour.core.errors import ProviderError
from audiotour.models.domain import EntityFacts, KnowledgeGraphEntity
from audiotour.services.http_client import ProviderClient

ENTITY_ID_RE = re.compile(r"^Q\d+$")

# P856 official website, P571 inception, P84 architect, P17 country,
# P131 located in, P1435 heritage designation.
FACTS_QUERY = """
SELECT ?officialWebsite ?inception ?architectLabel ?countryLabel ?locatedInLabel ?heritageLabel WHERE {{
  BIND(wd:{qid} AS ?item)
  OPTIONAL {{ ?item wdt:P856 ?officialWebsite. }}
  OPTIONAL {{ ?item wdt:P571 ?inception. }}
  OPTIONAL {{ ?item wdt:P84 ?architect. }}
  OPTIONAL {{ ?item wdt:P17 ?country. }}
  OPTIONAL {{ ?item wdt:P131 ?locatedIn. }}
  OPTIONAL {{ ?item wdt:P1435 ?heritage. }}
  SERVICE wikibase:label {{ bd:serviceParam wikibase:language "en". }}
}}
LIMIT 1
""".strip()

FACT_BINDINGS = {
    "official_website": "officialWebsite",
    "inception": "inception",
    "architect": "architectLabel",
    "country": "countryLabel",
    "located_in": "locatedInLabel",
    "heritage_designation": "heritageLabel",
}


def _text(value: Any) -> Optional[str]:
    return value if isinstance(value, str) and value else None


def entity_url(entity_id: str) -> str:
    return f"https://www.wikidata.org/wiki/{entity_id}"


class KnowledgeGraphClient(ProviderClient):
    provider_name = "wikidata"

    def _default_headers(self) -> Dict[str, str]:
        return {
            "Accept": "application/json",
            "User-Agent": self.settings.PUBLIC_SOURCES_USER_AGENT,
        }

    async def search(self, query: str, limit: int = 2) -> List[KnowledgeGraphEntity]:
        data = await self.get_json(
            self.settings.WIKIDATA_API_URL,
            params={
                "action": "wbsearchentities",
                "format": "json",
                "language": "en",
                "limit": limit,
                "search": query,
            },
        )
        if not isinstance(data, dict):
            raise ProviderError(self.provider_name, "malformed search payload")
        results = data.get("search")
        if results is None:
            return []
        if not isinstance(results, list):
            raise ProviderError(self.provider_name, "malformed search payload")

        entities: List[KnowledgeGraphEntity] = []
        for r in results[:limit]:
            # Without a string Q-id there is nothing to look facts up by.
            if not isinstance(r, dict) or not isinstance(r.get("id"), str) or not r["id"]:
                continue
            entities.append(
                KnowledgeGraphEntity(id=r["id"], label=_text(r.get("label")), description=_text(r.get("description")))
            )
        return entities

    async def facts(self, entity_id: str) -> EntityFacts:
        # The id is interpolated into SPARQL, so only accept plain Q-ids.
        if not ENTITY_ID_RE.match(entity_id):
            raise ProviderError(self.provider_name, f"refusing non-entity id {entity_id!r}")

        data = await self.get_json(
            self.settings.WIKIDATA_SPARQL_URL,
            params={"format": "json", "query": FACTS_QUERY.format(qid=entity_id)},
            headers={"Accept": "application/sparql-results+json"},
        )
        results = data.get("results") if isinstance(data, dict) else None
        bindings = results.get("bindings") if isinstance(results, dict) else None
        if not isinstance(bindings, list):
            raise ProviderError(self.provider_name, "malformed facts payload")
        if not bindings:
            return EntityFacts()
        row = bindings[0] if isinstance(bindings[0], dict) else {}

        values = {}
        for field, key in FACT_BINDINGS.items():
            cell = row.get(key)
            if isinstance(cell, dict) and cell.get("value"):
                values[field] = str(cell["value"])
        return EntityFacts(**values)
