"""
Reflection narratives: rule-based text, redacted AI context, AI client.

Rule-based narrative
--------------------
select_rules(computed) decides which summary rule and which suggestion rules
fire. It is a pure function of the computed blob; render_rule_narrative()
turns the selection into text. Wording lives in the template tables below and
can change without touching selection.

  Summary rules (exactly one)
    quiet          total == 0
    single_moment  total == 1
    overview       otherwise

  Suggestion rules (one or more)
    quiet_restart, quiet_small_acts   only when quiet
    widen_circle        unique_people < 2 and total > 1
    explore_categories  exactly one category in the window
    spread_days         active_days < min(7, days / 4)
    receive_too         given share > 70 %
    pass_it_on          received share > 70 %
    keep_nurturing      fallback when nothing else fired

AI narrative
------------
The AI path only ever sees the computed blob plus redacted context: person
names and aliases are replaced by stable pseudonyms ("Person A" …), e-mail
addresses and phone numbers are masked, descriptions are truncated.

OpenAINarrativeGenerator talks to any OpenAI-compatible /chat/completions
endpoint through httpx. A timeout raises NarrativeTimeoutError; every other
failure raises NarrativeGenerationError. It never falls back to rule text:
the caller decides what to do with a failure.
"""
from __future__ import annotations

import json
import logging
import re
import string
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional, Protocol

import httpx

from app.core.config import settings
from app.core.errors import NarrativeGenerationError, NarrativeTimeoutError
from app.models.category import Category
from app.models.moment import Moment
from app.models.person import Person
from app.services.bucketing import civil_date
from app.services.event_store import moment_tags, resolve_person

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Rule selection (pure)
# ---------------------------------------------------------------------------

class SummaryRule:
    QUIET = "quiet"
    SINGLE_MOMENT = "single_moment"
    OVERVIEW = "overview"


class SuggestionRule:
    QUIET_RESTART = "quiet_restart"
    QUIET_SMALL_ACTS = "quiet_small_acts"
    WIDEN_CIRCLE = "widen_circle"
    EXPLORE_CATEGORIES = "explore_categories"
    SPREAD_DAYS = "spread_days"
    RECEIVE_TOO = "receive_too"
    PASS_IT_ON = "pass_it_on"
    KEEP_NURTURING = "keep_nurturing"


_SKEW_THRESHOLD = 70


@dataclass(frozen=True)
class RuleSelection:
    summary_rule: str
    suggestion_rules: tuple[str, ...]


def select_rules(computed: dict[str, Any]) -> RuleSelection:
    total = computed.get("total", 0)
    if total == 0:
        return RuleSelection(
            summary_rule=SummaryRule.QUIET,
            suggestion_rules=(SuggestionRule.QUIET_RESTART, SuggestionRule.QUIET_SMALL_ACTS),
        )

    summary_rule = SummaryRule.SINGLE_MOMENT if total == 1 else SummaryRule.OVERVIEW

    rules: list[str] = []
    if computed.get("unique_people", 0) < 2 and total > 1:
        rules.append(SuggestionRule.WIDEN_CIRCLE)
    if len(computed.get("category_share", [])) == 1:
        rules.append(SuggestionRule.EXPLORE_CATEGORIES)
    if computed.get("active_days", 0) < min(7, computed.get("days", 0) / 4):
        rules.append(SuggestionRule.SPREAD_DAYS)

    balance = computed.get("balance") or {}
    if balance.get("given_pct", 0) > _SKEW_THRESHOLD:
        rules.append(SuggestionRule.RECEIVE_TOO)
    elif balance.get("received_pct", 0) > _SKEW_THRESHOLD:
        rules.append(SuggestionRule.PASS_IT_ON)

    if not rules:
        rules.append(SuggestionRule.KEEP_NURTURING)
    return RuleSelection(summary_rule=summary_rule, suggestion_rules=tuple(rules))


# ---------------------------------------------------------------------------
# Rule rendering
# ---------------------------------------------------------------------------

_SUGGESTION_TEXT = {
    SuggestionRule.QUIET_RESTART: (
        "Consider starting small tomorrow. Maybe a smile, a thank you, "
        "or reaching out to someone you care about."
    ),
    SuggestionRule.QUIET_SMALL_ACTS: (
        "Remember that even small acts count - holding a door, listening to a "
        "friend, or being patient with yourself."
    ),
    SuggestionRule.WIDEN_CIRCLE: (
        "You might enjoy expanding your kindness circle - perhaps reaching out to "
        "someone new or reconnecting with an old friend."
    ),
    SuggestionRule.EXPLORE_CATEGORIES: (
        "Consider exploring kindness in different areas of your life - maybe at "
        "work, in your community, or through self-care."
    ),
    SuggestionRule.SPREAD_DAYS: (
        "Try spreading your kindness moments across more days - even small daily "
        "acts can create meaningful patterns."
    ),
    SuggestionRule.RECEIVE_TOO: (
        "You're a natural giver. Remember to notice the kindness that comes your way too."
    ),
    SuggestionRule.PASS_IT_ON: (
        "You've been on the receiving end of a lot of kindness lately. "
        "Consider sharing some of it forward."
    ),
    SuggestionRule.KEEP_NURTURING: (
        "You're creating beautiful moments across different parts of your life. "
        "Keep nurturing these connections."
    ),
}


def _summary_text(rule: str, computed: dict[str, Any]) -> str:
    days = computed.get("days", 0)
    if rule == SummaryRule.QUIET:
        return (
            f"The last {days} days were quiet on the kindness front. "
            "That's perfectly okay - sometimes we need to recharge."
        )
    if rule == SummaryRule.SINGLE_MOMENT:
        return (
            f"You captured one meaningful kindness moment in the last {days} days. "
            "It's wonderful that you took time to acknowledge it."
        )
    people = computed.get("unique_people", 0)
    people_clause = ""
    if people:
        noun = "person" if people == 1 else "people"
        people_clause = f", connecting with {people} {noun}"
    top = (computed.get("top_category") or {}).get("name") or "various areas"
    return (
        f"You captured {computed.get('total', 0)} kindness moments in the last "
        f"{days} days{people_clause}. Most of your kindness was in {top}."
    )


def render_rule_narrative(computed: dict[str, Any]) -> tuple[str, list[str]]:
    selection = select_rules(computed)
    summary = _summary_text(selection.summary_rule, computed)
    suggestions = [_SUGGESTION_TEXT[r] for r in selection.suggestion_rules]
    return summary, suggestions


# ---------------------------------------------------------------------------
# Redaction
# ---------------------------------------------------------------------------

_EMAIL_RE = re.compile(r"[\w.+-]+@[\w-]+(?:\.[\w-]+)+")
_PHONE_RE = re.compile(r"\+?\d(?:[\s().-]{0,2}\d){8,}")
_MAX_DESCRIPTION = 280


def _pseudonym(index: int) -> str:
    letters = string.ascii_uppercase
    if index < len(letters):
        return f"Person {letters[index]}"
    return f"Person {index + 1}"


def _names_of(person: Person) -> list[str]:
    names = [person.display_name]
    if person.aliases:
        try:
            aliases = json.loads(person.aliases)
        except (ValueError, TypeError):
            aliases = []
        if isinstance(aliases, list):
            names.extend(str(a) for a in aliases)
    return [n.strip() for n in names if n and n.strip()]


class Pseudonymizer:
    """Stable person → "Person X" labels for one redaction pass."""

    def __init__(self, people: dict[int, Person]):
        self._people = people
        self._labels: dict[int, str] = {}
        self._pattern: Optional[re.Pattern] = None
        self._name_owner: dict[str, int] = {}
        for person in people.values():
            terminal = resolve_person(person.id, people)
            for name in _names_of(person):
                self._name_owner.setdefault(name.lower(), terminal)
        if self._name_owner:
            names = sorted(self._name_owner, key=len, reverse=True)
            self._pattern = re.compile(
                r"(?<!\w)(" + "|".join(re.escape(n) for n in names) + r")(?!\w)",
                re.IGNORECASE,
            )

    def label(self, person_id: int) -> str:
        terminal = resolve_person(person_id, self._people)
        if terminal not in self._labels:
            self._labels[terminal] = _pseudonym(len(self._labels))
        return self._labels[terminal]

    def scrub(self, text: str) -> str:
        text = _EMAIL_RE.sub("[email]", text)
        text = _PHONE_RE.sub("[phone]", text)
        if self._pattern is not None:
            text = self._pattern.sub(lambda m: self.label(self._name_owner[m.group(0).lower()]), text)
        return text


def redact_context(
    moments: Iterable[Moment],
    people: dict[int, Person],
    categories: dict[int, Category],
    tz: str,
    limit: Optional[int] = None,
) -> list[dict[str, Any]]:
    """Context rows safe to send to the AI provider, newest first."""
    limit = limit if limit is not None else settings.AI_MAX_CONTEXT_ITEMS
    pseudo = Pseudonymizer(people)
    rows: list[dict[str, Any]] = []
    ordered = sorted(moments, key=lambda m: m.happened_at, reverse=True)[:limit]
    for m in ordered:
        category = categories.get(m.category_id) if m.category_id is not None else None
        description = pseudo.scrub(m.description or "")
        rows.append({
            "date": str(civil_date(m.happened_at, tz)),
            "action": str(m.action.value if hasattr(m.action, "value") else m.action),
            "significant": bool(m.significance),
            "category": category.name if category is not None else None,
            "person": pseudo.label(m.person_id) if m.person_id is not None else None,
            "tags": [pseudo.scrub(t) for t in moment_tags(m)],
            "description": description[:_MAX_DESCRIPTION],
        })
    return rows


# ---------------------------------------------------------------------------
# AI generator
# ---------------------------------------------------------------------------

@dataclass
class Narrative:
    summary: str
    suggestions: list[str] = field(default_factory=list)


class NarrativeGenerator(Protocol):
    def generate(self, computed: dict[str, Any], context: list[dict[str, Any]]) -> Narrative:
        ...


_SYSTEM_PROMPT = (
    "You write short, warm reflections for a personal kindness journal. "
    "You receive aggregate statistics and pseudonymised journal entries. "
    "Never invent names; refer to people only by the labels given. "
    'Reply with a JSON object: {"summary": string (2-3 sentences), '
    '"suggestions": array of 1-3 short strings}.'
)


class OpenAINarrativeGenerator:
    """Narrative generator backed by an OpenAI-compatible chat completions API."""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.openai.com/v1",
        model: str = "gpt-4o-mini",
        timeout: float = 20.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout = timeout
        self._transport = transport

    def _payload(self, computed: dict[str, Any], context: list[dict[str, Any]]) -> dict:
        return {
            "model": self.model,
            "response_format": {"type": "json_object"},
            "temperature": 0.7,
            "messages": [
                {"role": "system", "content": _SYSTEM_PROMPT},
                {
                    "role": "user",
                    "content": json.dumps(
                        {"computed": computed, "moments": context},
                        ensure_ascii=False,
                    ),
                },
            ],
        }

    def generate(self, computed: dict[str, Any], context: list[dict[str, Any]]) -> Narrative:
        logger.info(
            "Requesting AI narrative (model=%s, context_items=%d)", self.model, len(context)
        )
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                response = client.post(
                    f"{self.base_url}/chat/completions",
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "Content-Type": "application/json",
                    },
                    json=self._payload(computed, context),
                )
                response.raise_for_status()
                data = response.json()
        except httpx.TimeoutException as exc:
            logger.warning("AI narrative timed out after %ss", self.timeout)
            raise NarrativeTimeoutError(self.timeout) from exc
        except httpx.HTTPStatusError as exc:
            logger.error("AI narrative provider returned %s", exc.response.status_code)
            raise NarrativeGenerationError(
                f"provider returned HTTP {exc.response.status_code}",
                details={"status_code": exc.response.status_code},
            ) from exc
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("AI narrative request failed: %s", exc)
            raise NarrativeGenerationError(str(exc) or exc.__class__.__name__) from exc

        return self._parse(data)

    @staticmethod
    def _parse(data: dict[str, Any]) -> Narrative:
        try:
            content = data["choices"][0]["message"]["content"]
            body = json.loads(content)
            summary = str(body["summary"]).strip()
            raw_suggestions = body.get("suggestions") or []
        except (KeyError, IndexError, TypeError, ValueError, AttributeError) as exc:
            raise NarrativeGenerationError("provider response was not the expected JSON shape") from exc

        if isinstance(raw_suggestions, str):
            raw_suggestions = [raw_suggestions]
        suggestions = [str(s).strip() for s in raw_suggestions if str(s).strip()]
        if not summary:
            raise NarrativeGenerationError("provider returned an empty summary")
        return Narrative(summary=summary, suggestions=suggestions)


def default_generator() -> Optional[NarrativeGenerator]:
    """The configured AI generator, or None when AI is disabled."""
    if not settings.ai_enabled:
        return None
    return OpenAINarrativeGenerator(
        api_key=settings.AI_API_KEY,
        base_url=settings.AI_BASE_URL,
        model=settings.AI_MODEL,
        timeout=settings.AI_TIMEOUT_SECONDS,
    )
