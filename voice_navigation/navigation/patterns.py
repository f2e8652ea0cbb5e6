"""
Multilingual Voice Pattern Matcher.
Scores an utterance against registered phrases and destination templates
for each intent, tolerating typos and politeness variations.
"""

import logging
import re
import unicodedata
from collections import OrderedDict
from dataclasses import dataclass, field, replace
from typing import Optional, Dict, Any, List, Tuple, Pattern

from rapidfuzz import fuzz, process

from voice_navigation.config import (
    get_settings,
    normalize_language,
    PRODUCT_CATEGORIES,
    PROFILE_SECTIONS
)
from voice_navigation.core.exceptions import PatternException
from voice_navigation.navigation.catalog import (
    CulturalRegister,
    IntentMapping,
    DESTINATION_TEMPLATES,
    DESTINATION_FILLERS
)
from voice_navigation.navigation.intents import IntentMappingTable

logger = logging.getLogger(__name__)
settings = get_settings()

DESTINATION_SLOT = "{destination}"

_APOSTROPHES = re.compile(r"['’`]")
_PUNCTUATION = re.compile(r"[.,!?;:\"()\[\]{}<>।॥|/\\]")
_WHITESPACE = re.compile(r"\s+")


@dataclass
class PatternEntry:
    """A normalized phrase or destination template."""
    text: str
    language: str
    register: CulturalRegister
    intent: str = ""
    weight: float = 1.0
    priority: int = 5
    regex: Optional[Pattern] = None

    @property
    def is_template(self) -> bool:
        return self.regex is not None


@dataclass
class AlternativeMatch:
    """Runner-up intent close to the best match."""
    intent: str
    confidence: float
    pattern: str

    def to_dict(self) -> Dict[str, Any]:
        return {"intent": self.intent, "confidence": round(self.confidence, 4), "pattern": self.pattern}


@dataclass
class MatchResult:
    """Outcome of matching one utterance."""
    matched: bool
    intent: str = ""
    confidence: float = 0.0
    language: str = "en-US"
    parameters: Dict[str, Any] = field(default_factory=dict)
    cultural_register: Optional[CulturalRegister] = None
    matched_pattern: Optional[str] = None
    match_type: str = "none"  # "exact", "template", "contains", "fuzzy", "llm" or "none"
    alternatives: List[AlternativeMatch] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "matched": self.matched,
            "intent": self.intent,
            "confidence": round(self.confidence, 4),
            "language": self.language,
            "parameters": self.parameters,
            "cultural_register": self.cultural_register.value if self.cultural_register else None,
            "matched_pattern": self.matched_pattern,
            "match_type": self.match_type,
            "alternatives": [a.to_dict() for a in self.alternatives]
        }


@dataclass
class _Candidate:
    intent: str
    score: float
    entry: PatternEntry
    match_type: str
    order: int
    parameters: Dict[str, Any] = field(default_factory=dict)


class PatternMatcher:
    """
    Matches utterances against per-language intent phrases.

    Scoring, best first:
    - exact: normalized utterance equals a phrase
    - template: a destination template matches and the spoken
      destination resolves to a known route alias
    - contains: a phrase appears as whole words inside the utterance
    - fuzzy: rapidfuzz ratio above the configured threshold

    An intent's confidence is its best entry score. Runner-up intents
    within the tolerance band are reported as alternatives.
    """

    def __init__(
        self,
        intent_table: IntentMappingTable,
        templates: Optional[Dict[str, List[Tuple[str, CulturalRegister, float]]]] = None,
        fuzzy_threshold: Optional[float] = None,
        alternative_tolerance: Optional[float] = None,
        max_alternatives: Optional[int] = None,
        cache_size: Optional[int] = None
    ):
        self._table = intent_table
        self.fuzzy_threshold = settings.FUZZY_MATCH_THRESHOLD if fuzzy_threshold is None else fuzzy_threshold
        self.alternative_tolerance = (
            settings.ALTERNATIVE_MATCH_TOLERANCE if alternative_tolerance is None else alternative_tolerance
        )
        self.max_alternatives = settings.MAX_ALTERNATIVES if max_alternatives is None else max_alternatives
        self._cache_size = settings.PATTERN_CACHE_SIZE if cache_size is None else cache_size

        self._phrases: Dict[str, List[PatternEntry]] = {}
        self._templates: Dict[str, List[PatternEntry]] = {}
        self._destinations: Dict[str, Dict[str, str]] = {}
        self._intent_order: Dict[str, int] = {}
        self._priorities: Dict[str, int] = {}
        self._cache: "OrderedDict[Tuple[str, str, Optional[str]], MatchResult]" = OrderedDict()

        for mapping in intent_table.get_all_intents():
            self.register_intent(mapping)

        for language, entries in (templates if templates is not None else DESTINATION_TEMPLATES).items():
            for text, register, weight in entries:
                self.add_template(text, language, register, weight)

        logger.info(
            f"Pattern matcher ready: {sum(len(v) for v in self._phrases.values())} phrases, "
            f"{sum(len(v) for v in self._templates.values())} templates"
        )

    # =========================
    # Registration
    # =========================

    def register_intent(self, mapping: IntentMapping):
        """Load every phrase of an intent mapping, replacing earlier ones."""
        for language in self._phrases:
            self._phrases[language] = [e for e in self._phrases[language] if e.intent != mapping.name]
        self._intent_order.setdefault(mapping.name, len(self._intent_order))
        self._priorities[mapping.name] = mapping.priority
        for language, phrases in mapping.phrases.items():
            for text, register in phrases.patterns:
                self.add_pattern(mapping.name, text, language, register, priority=mapping.priority)
        self._refresh_destinations()

    def add_pattern(
        self,
        intent: str,
        text: str,
        language: str,
        register: CulturalRegister = CulturalRegister.DIRECT,
        weight: float = 1.0,
        priority: Optional[int] = None
    ):
        """Register a literal phrase for an intent."""
        if DESTINATION_SLOT in text:
            raise PatternException(
                "Phrases with a destination slot must be added as templates",
                details={"pattern": text}
            )
        if not 0.0 < weight <= 1.0:
            raise PatternException(f"Pattern weight must be in (0, 1], got {weight}", details={"pattern": text})

        language = normalize_language(language)
        normalized = self.normalize_input(text, language)
        if not normalized:
            raise PatternException("Pattern is empty after normalization", details={"pattern": text})

        self._intent_order.setdefault(intent, len(self._intent_order))
        if priority is None:
            priority = self._priorities.get(intent, 5)
        self._phrases.setdefault(language, []).append(PatternEntry(
            text=normalized,
            language=language,
            register=register,
            intent=intent,
            weight=weight,
            priority=priority
        ))
        self.clear_cache()

    def add_template(
        self,
        text: str,
        language: str,
        register: CulturalRegister = CulturalRegister.DIRECT,
        weight: float = 0.9
    ):
        """Register a destination template such as 'go to {destination}'."""
        if DESTINATION_SLOT not in text:
            raise PatternException("Templates need a {destination} slot", details={"pattern": text})
        if not 0.0 < weight <= 1.0:
            raise PatternException(f"Template weight must be in (0, 1], got {weight}", details={"pattern": text})

        language = normalize_language(language)
        parts = [self.normalize_input(part, language) for part in text.split(DESTINATION_SLOT)]
        normalized = _WHITESPACE.sub(" ", f" {DESTINATION_SLOT} ".join(parts)).strip()
        regex = re.compile(
            re.escape(normalized).replace(re.escape(DESTINATION_SLOT), r"(?P<destination>.+?)")
        )
        self._templates.setdefault(language, []).append(PatternEntry(
            text=normalized,
            language=language,
            register=register,
            weight=weight,
            regex=regex
        ))
        if language not in self._destinations:
            self._destinations[language] = self._table.get_destination_aliases(language)
        self.clear_cache()

    def _refresh_destinations(self):
        languages = set(self._destinations) | set(self._templates) | set(self._phrases)
        self._destinations = {
            language: self._table.get_destination_aliases(language) for language in languages
        }
        self.clear_cache()

    # =========================
    # Matching
    # =========================

    @staticmethod
    def normalize_input(text: str, language: str = "en-US") -> str:
        """Lowercase, drop punctuation and collapse whitespace."""
        text = unicodedata.normalize("NFC", text or "").lower()
        text = _APOSTROPHES.sub("", text)
        text = _PUNCTUATION.sub(" ", text)
        return _WHITESPACE.sub(" ", text).strip()

    def match_pattern(
        self,
        utterance: str,
        language: str,
        cultural_register: Optional[CulturalRegister] = None
    ) -> MatchResult:
        """
        Match an utterance in the given language.
        Never raises; an unknown language or empty input yields no match.
        """
        language = normalize_language(language)
        normalized = self.normalize_input(utterance, language)

        if not normalized or (language not in self._phrases and language not in self._templates):
            return MatchResult(matched=False, language=language)

        key = (normalized, language, cultural_register.value if cultural_register else None)
        cached = self._cache.get(key)
        if cached is not None:
            self._cache.move_to_end(key)
            return replace(cached, parameters=dict(cached.parameters), alternatives=list(cached.alternatives))

        result = self._match(normalized, language, cultural_register)

        self._cache[key] = result
        while len(self._cache) > self._cache_size:
            self._cache.popitem(last=False)

        return replace(result, parameters=dict(result.parameters), alternatives=list(result.alternatives))

    def _match(
        self,
        normalized: str,
        language: str,
        cultural_register: Optional[CulturalRegister]
    ) -> MatchResult:
        best: Dict[str, _Candidate] = {}

        for entry in self._phrases.get(language, []):
            if cultural_register and entry.register != cultural_register:
                continue
            score, match_type = self._score_phrase(normalized, entry)
            if score > 0:
                self._keep_best(best, _Candidate(
                    intent=entry.intent,
                    score=score,
                    entry=entry,
                    match_type=match_type,
                    order=self._intent_order.get(entry.intent, len(self._intent_order))
                ))

        for entry in self._templates.get(language, []):
            if cultural_register and entry.register != cultural_register:
                continue
            candidate = self._score_template(normalized, entry, language)
            if candidate is not None:
                self._keep_best(best, candidate)

        if not best:
            logger.debug(f"No pattern matched '{normalized}' ({language})")
            return MatchResult(matched=False, language=language)

        ranked = sorted(
            best.values(),
            key=lambda c: (-c.score, -self._priorities.get(c.intent, 0), c.order)
        )
        top = ranked[0]

        alternatives = [
            AlternativeMatch(intent=c.intent, confidence=min(c.score, 1.0), pattern=c.entry.text)
            for c in ranked[1:]
            if top.score - c.score <= self.alternative_tolerance
        ][:self.max_alternatives]

        parameters = dict(top.parameters)
        parameters.update(self._extract_parameters(top.intent, normalized))

        return MatchResult(
            matched=True,
            intent=top.intent,
            confidence=min(top.score, 1.0),
            language=language,
            parameters=parameters,
            cultural_register=top.entry.register,
            matched_pattern=top.entry.text,
            match_type=top.match_type,
            alternatives=alternatives
        )

    def _score_phrase(self, normalized: str, entry: PatternEntry) -> Tuple[float, str]:
        if normalized == entry.text:
            return entry.weight, "exact"

        if f" {entry.text} " in f" {normalized} ":
            coverage = len(entry.text) / len(normalized)
            return entry.weight * (0.7 + 0.25 * coverage), "contains"

        ratio = fuzz.ratio(normalized, entry.text)
        if ratio >= self.fuzzy_threshold:
            return entry.weight * (ratio / 100.0) * 0.9, "fuzzy"

        return 0.0, "none"

    def _score_template(self, normalized: str, entry: PatternEntry, language: str) -> Optional[_Candidate]:
        match = entry.regex.fullmatch(normalized)
        if not match:
            return None

        spoken = match.group("destination").strip()
        intent, similarity = self._resolve_destination(spoken, language)
        if not intent:
            return None

        return _Candidate(
            intent=intent,
            score=entry.weight * similarity,
            entry=entry,
            match_type="template" if similarity == 1.0 else "fuzzy",
            order=self._intent_order.get(intent, len(self._intent_order)),
            parameters={"destination": spoken}
        )

    def _resolve_destination(self, spoken: str, language: str) -> Tuple[Optional[str], float]:
        aliases = self._destinations.get(language, {})
        if not aliases:
            return None, 0.0

        fillers = DESTINATION_FILLERS.get(language, ())
        stripped = " ".join(word for word in spoken.split() if word not in fillers)

        for candidate in (spoken, stripped):
            if candidate in aliases:
                return aliases[candidate], 1.0

        if not stripped:
            return None, 0.0

        found = process.extractOne(
            stripped,
            list(aliases.keys()),
            scorer=fuzz.ratio,
            score_cutoff=self.fuzzy_threshold
        )
        if found is None:
            return None, 0.0

        alias, score, _ = found
        return aliases[alias], (score / 100.0) * 0.9

    @staticmethod
    def _keep_best(best: Dict[str, _Candidate], candidate: _Candidate):
        current = best.get(candidate.intent)
        if current is None or candidate.score > current.score:
            best[candidate.intent] = candidate

    def _extract_parameters(self, intent: str, normalized: str) -> Dict[str, Any]:
        """Pull known route parameters out of the utterance."""
        mapping = self._table.get_intent(intent)
        if mapping is None or not mapping.parameters:
            return {}

        padded = f" {normalized} "
        params: Dict[str, Any] = {}
        if "section" in mapping.parameters:
            for section in PROFILE_SECTIONS:
                if f" {section} " in padded:
                    params["section"] = section
                    break
        if "category" in mapping.parameters:
            for category in PRODUCT_CATEGORIES:
                if f" {category.replace('_', ' ')} " in padded:
                    params["category"] = category
                    break
        return params

    # =========================
    # Introspection
    # =========================

    def get_intents(self) -> List[str]:
        return list(self._intent_order)

    def get_available_patterns(self, language: str) -> List[Dict[str, Any]]:
        language = normalize_language(language)
        entries = self._phrases.get(language, []) + self._templates.get(language, [])
        return [
            {
                "intent": e.intent or None,
                "pattern": e.text,
                "register": e.register.value,
                "weight": e.weight,
                "template": e.is_template
            }
            for e in entries
        ]

    def get_cultural_registers(self, language: str) -> List[str]:
        language = normalize_language(language)
        entries = self._phrases.get(language, []) + self._templates.get(language, [])
        return sorted({e.register.value for e in entries})

    def get_pattern_stats(self, language: Optional[str] = None) -> Dict[str, Any]:
        languages = [normalize_language(language)] if language else sorted(
            set(self._phrases) | set(self._templates)
        )
        stats = {}
        for lang in languages:
            phrases = self._phrases.get(lang, [])
            templates = self._templates.get(lang, [])
            registers: Dict[str, int] = {}
            for e in phrases + templates:
                registers[e.register.value] = registers.get(e.register.value, 0) + 1
            stats[lang] = {
                "phrases": len(phrases),
                "templates": len(templates),
                "intents": len({e.intent for e in phrases}),
                "destinations": len(self._destinations.get(lang, {})),
                "registers": registers
            }
        return {"languages": stats, "cache_size": len(self._cache)}

    def clear_cache(self):
        self._cache.clear()
