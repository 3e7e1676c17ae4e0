# audiotour/services/narrative.py
# Spoken narration for a landmark or an area: a generative attempt first,
# then a deterministic template that always succeeds.

import math
from typing import List, Optional, Protocol, Sequence

import structlog

from audiotour.core.errors import AudioTourError, GenerationError
from audiotour.models.domain import (
    AreaInfo,
    AreaSubject,
    Landmark,
    NarrativeDraft,
    SourceDocument,
    StrategySkip,
    Subject,
)
from audiotour.services.generation import GenerationClient

logger = structlog.get_logger(__name__)

AREA_LEAD_IN = "There is no specific landmark around you, however"

LANDMARK_SYSTEM_PROMPT = "You write accurate, delightful tour narrations."
AREA_SYSTEM_PROMPT = "You write accurate, delightful tour narrations about neighborhoods and areas."

GUIDE_PERSONA = "You are an expert, engaging historical audio tour guide with a passion for storytelling."

COMMON_RULES = [
    "- Use ONLY the facts contained in the provided sources. Do not invent details.",
    "- If the sources don't contain a key fact, either omit it or say you're not sure.",
    "- Keep it ~30-60 seconds when spoken (roughly 60-120 words).",
]

STYLE_RULES = [
    "- Vary the phrasing/structure from run to run (don't use a fixed template).",
    "- Avoid bullet points; write natural spoken paragraphs.",
    "- Avoid markdown.",
]

LANDMARK_RULES = [
    "- Focus heavily on historical context: when was it built, why was it built, what historical events happened here, why is it located in this specific place.",
    '- Explain the "why" behind things: why this location, why this design, why this name, why it matters historically.',
    "- Make the structure feel like a historical tour (hook with historical significance, key historical facts and context, why it's here/why it matters, closing that connects to broader history).",
]

AREA_RULES = [
    "- Focus on what the area is known for: its character, history, culture, reputation, notable features.",
    "- Explain the \"why\" behind the area's character: why it developed this way, why it's known for certain things.",
    "- Make it feel like a natural continuation of a tour (hook with area name, what it's known for, historical/cultural context, closing that connects to the present).",
]

# (keywords, sentence); the first entry with a keyword in the category wins.
CATEGORY_CONTEXT = (
    (("monument", "memorial"), "This monument stands as a testament to the people and events that shaped this place."),
    (("museum",), "This museum preserves and shares the stories of this region."),
    (("historic",), "This historic site has witnessed countless moments in history."),
    (
        ("cathedral", "church", "temple"),
        "This sacred space has been a center of community and spirituality for generations.",
    ),
    (("plaza", "square"), "This public square has been a gathering place for the community."),
)

LANDMARK_CLOSING = "Take a moment to appreciate the history and culture that surrounds you."


# --- Prompts ---

def format_sources(sources: Sequence[SourceDocument], empty_text: str) -> str:
    if not sources:
        return empty_text
    blocks = []
    for i, source in enumerate(sources, start=1):
        block = f"Source {i}: {source.title}\nURL: {source.url}"
        if source.excerpt:
            block += f"\nExcerpt: {source.excerpt}"
        blocks.append(block)
    return "\n\n".join(blocks)


def build_landmark_prompt(landmark: Landmark, sources: Sequence[SourceDocument]) -> str:
    lines = [
        GUIDE_PERSONA,
        "Write a fresh, varied, spoken narration that focuses on the historical significance and context of the place below.",
        "",
        "Requirements:",
        *COMMON_RULES,
        *LANDMARK_RULES,
        *STYLE_RULES,
        "",
        "Place:",
        f"Name: {landmark.name}",
        f"Category: {landmark.category}",
        f"Address: {landmark.address}" if landmark.address else "",
        f"Rating: {landmark.rating}" if landmark.rating else "",
        f"Distance (meters): {round(landmark.distance)}",
        f"Coordinates: {landmark.location.lat}, {landmark.location.lng}",
        "",
        "Sources:",
        format_sources(sources, "No sources were found for this query."),
    ]
    return "\n".join(line for line in lines if line)


def build_area_prompt(area: AreaInfo, sources: Sequence[SourceDocument]) -> str:
    address_details = "\n".join(f"{key}: {value}" for key, value in area.address.items())
    lines = [
        GUIDE_PERSONA,
        "Write a fresh, varied, spoken narration about the area/neighborhood where the user is located.",
        "",
        "Requirements:",
        f'- Start with: "{AREA_LEAD_IN}..."',
        *COMMON_RULES,
        *AREA_RULES,
        *STYLE_RULES,
        "",
        "Area Information:",
        f"Area Name: {area.area_name}",
        f"Full Address: {area.display_name}",
        "Address Details:",
        address_details or "No address details available",
        "",
        "Sources:",
        format_sources(sources, "No sources were found for this area."),
    ]
    return "\n".join(line for line in lines if line)


# --- Templates ---

def distance_phrase(distance_m: float) -> str:
    if distance_m < 100:
        return "right here"
    if distance_m < 500:
        return "just steps away"
    if distance_m < 1000:
        return "a short walk away"
    # half-up to one decimal of a kilometer
    km = math.floor(distance_m / 100 + 0.5) / 10
    return f"about {km:.1f} kilometers away"


def category_context(category: str) -> Optional[str]:
    lowered = category.lower()
    for keywords, sentence in CATEGORY_CONTEXT:
        if any(keyword in lowered for keyword in keywords):
            return sentence
    return None


def landmark_template(landmark: Landmark) -> str:
    sentences = [f"You're standing near {landmark.name}, {distance_phrase(landmark.distance)}."]
    context = category_context(landmark.category)
    if context:
        sentences.append(context)
    if landmark.description and landmark.description.strip():
        sentences.append(landmark.description.strip())
    else:
        category = landmark.category.strip().lower() or "place"
        sentences.append(f"This {category} holds significance in the local area.")
    sentences.append(LANDMARK_CLOSING)
    return " ".join(sentences)


def area_template(area: AreaInfo) -> str:
    location = f"{area.area_name}, {area.city}" if area.city else area.area_name
    return (
        f"{AREA_LEAD_IN} you are in {location}. "
        "This area has its own unique character and history. "
        "Take a moment to observe your surroundings and appreciate the local atmosphere."
    )


# --- Strategies ---

class NarrativeStrategy(Protocol):
    name: str
    generative: bool

    async def compose(self, subject: Subject, sources: Sequence[SourceDocument]) -> str: ...


class GenerativeStrategy:
    name = "generative"
    generative = True

    def __init__(self, client: GenerationClient, timeout: Optional[float] = None):
        self.client = client
        self.timeout = timeout

    async def compose(self, subject: Subject, sources: Sequence[SourceDocument]) -> str:
        if isinstance(subject, AreaSubject):
            prompt, system_prompt = build_area_prompt(subject.area, sources), AREA_SYSTEM_PROMPT
        else:
            prompt, system_prompt = build_landmark_prompt(subject.landmark, sources), LANDMARK_SYSTEM_PROMPT
        try:
            return await self.client.generate(prompt, system_prompt, timeout=self.timeout)
        except AudioTourError as e:
            raise GenerationError(str(e), cause=e)


class TemplateStrategy:
    name = "template"
    generative = False

    async def compose(self, subject: Subject, sources: Sequence[SourceDocument]) -> str:
        if isinstance(subject, AreaSubject):
            return area_template(subject.area)
        return landmark_template(subject.landmark)


class NarrativeSynthesizer:
    """Runs narration strategies in order until one produces text.

    The last strategy is the template, which cannot fail, so ``synthesize``
    always returns a non-empty narrative. Every skipped strategy is reported
    with its reason.
    """

    def __init__(self, strategies: List[NarrativeStrategy]):
        if not strategies or not isinstance(strategies[-1], TemplateStrategy):
            strategies = [*(strategies or []), TemplateStrategy()]
        self.strategies = strategies

    @classmethod
    def with_generation(cls, client: GenerationClient, timeout: Optional[float] = None) -> "NarrativeSynthesizer":
        return cls([GenerativeStrategy(client, timeout=timeout), TemplateStrategy()])

    async def synthesize(self, subject: Subject, sources: Sequence[SourceDocument]) -> NarrativeDraft:
        skipped: List[StrategySkip] = []
        for strategy in self.strategies:
            try:
                text = await strategy.compose(subject, sources)
            except GenerationError as e:
                skipped.append(StrategySkip(strategy=strategy.name, reason=e.reason))
                logger.warning("strategy_skipped", strategy=strategy.name, reason=e.reason)
                continue
            if not text or not text.strip():
                skipped.append(StrategySkip(strategy=strategy.name, reason="empty narrative"))
                logger.warning("strategy_skipped", strategy=strategy.name, reason="empty narrative")
                continue
            return NarrativeDraft(text=text.strip(), used_generative_path=strategy.generative, skipped=skipped)

        # Unreachable while the template strategy closes the chain.
        raise RuntimeError("no narrative strategy produced text")
