"""Turn free-form LLM text into fixed-shape content blocks.

Every parser here is total: malformed, empty or non-string input yields
the default structure, never an exception.  List parsers always return
exactly the requested number of items, truncating each text field to the
limits the page and blog models enforce.
"""

from __future__ import annotations

import re
from typing import Any

# ── Limits ───────────────────────────────────────────────────────────
BULLET_TITLE_MAX = 60
BULLET_CONTENT_MAX = 200
STEP_DESCRIPTION_MAX = 350
FAQ_QUESTION_MAX = 150
FAQ_ANSWER_MAX = 700
MYTH_FACT_MAX = 150
AFTERCARE_TITLE_MAX = 80
AFTERCARE_DESCRIPTION_MAX = 200
AFTERCARE_MAX_ITEMS = 5
META_TITLE_MAX = 60
META_TITLE_SUFFIX = " | Dental Care"

DEFAULT_META_DESCRIPTION = "Professional dental services with expert care and modern technology."
DEFAULT_TIMEFRAME = "First 24 hours"

# ── Patterns ─────────────────────────────────────────────────────────
_AZURE_BULLET = re.compile(r"•\s*\*\*([^*]+)\*\*:\s*([^•]+?)(?=•|\s*$)")
_TITLED_LINE = re.compile(
    r"(?:^\s*(?:[\*\-\+•]|\d+[\.\)])\s*)?\**([^:*\n]+?)\**:[ \t]*([^\n]+)",
    re.MULTILINE,
)
_LIST_LINE = re.compile(r"^\s*(?:[\*\-\+•]|\d+[\.\)])\s+")
_TITLE_PREFIX = re.compile(r"^\s*(?:\d+[\.\)]|[\*\-\+•#]+)\s*")
_QUESTION_SPLIT = re.compile(r"\bQ\d*:")
_ANSWER_SPLIT = re.compile(r"^[\s:*]*(.+?)\s*\bA\d*:\s*(.+)$", re.DOTALL)
_MYTH_FACT = re.compile(r"Myth\s*\d*:\s*([^\n]+)\s*Fact\s*\d*:\s*([^\n]+)", re.IGNORECASE)
_MYTH_OR_FACT = re.compile(r"myth|fact", re.IGNORECASE)
_PAIR_PREFIX = re.compile(r"^\s*\d*\s*[:.]?\s*")

_TIMEFRAMES = ("24 hours", "48 hours", "1 week", "2 weeks", "first day", "first week")

_FAQ_CATEGORIES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("cost", ("cost", "price", "insurance", "expensive")),
    ("pain", ("pain", "hurt", "discomfort", "anesthesia")),
    ("recovery", ("recovery", "heal", "after", "care")),
    ("candidacy", ("candidate", "eligible", "suitable", "right for")),
    ("risks", ("risk", "danger", "side effect", "complication")),
    ("alternatives", ("alternative", "option", "instead", "other")),
    ("results", ("result", "outcome", "last", "permanent")),
    ("maintenance", ("maintain", "care", "clean", "upkeep")),
    ("procedure", ("procedure", "process", "how", "what happens")),
)

DEFAULT_FAQ_TOPICS: tuple[str, ...] = (
    "procedure duration",
    "cost and insurance",
    "pain and discomfort",
    "recovery time",
    "candidacy requirements",
    "preparation needed",
    "follow-up care",
    "results timeline",
    "alternative treatments",
    "risks and complications",
    "success rates",
    "maintenance",
    "lifestyle changes",
    "age considerations",
    "medical history",
    "technology used",
    "aftercare instructions",
    "appointment scheduling",
    "emergency procedures",
    "long-term effects",
    "preventive measures",
    "treatment comparison",
    "specialist referrals",
    "insurance coverage",
    "second opinions",
)


# ── Text cleanup ─────────────────────────────────────────────────────

def clean_content(text: Any) -> str:
    """Strip markdown and Q/A labels, collapse whitespace."""
    if not isinstance(text, str):
        return ""
    text = re.sub(r"\*\*(?:Answer|Question):\*\*\s*", "", text, flags=re.IGNORECASE)
    text = text.replace("*", "")
    text = re.sub(r"#{1,6}\s*", "", text)
    text = re.sub(r"\[([^\]]+)\]\([^)]+\)", r"\1", text)
    text = text.replace("`", "")
    text = re.sub(r"\b(?:Answer|Question):\s*", "", text, flags=re.IGNORECASE)
    return re.sub(r"\s+", " ", text).strip()


def _clean_title(title: str) -> str:
    return clean_content(_TITLE_PREFIX.sub("", title))


def categorize_faq(question: str) -> str:
    q = (question or "").lower()
    for category, needles in _FAQ_CATEGORIES:
        if any(n in q for n in needles):
            return category
    return "general"


def extract_timeframe(text: str) -> str:
    lowered = (text or "").lower()
    for phrase in _TIMEFRAMES:
        if phrase in lowered:
            return phrase[0].upper() + phrase[1:]
    return DEFAULT_TIMEFRAME


# ── Bullet points / steps ────────────────────────────────────────────

def _default_bullet(topic: str, n: int) -> dict[str, str]:
    return {
        "title": f"{topic} Point {n}",
        "content": (
            f"Important information about {topic.lower()} that helps patients "
            "understand this aspect of treatment."
        ),
    }


def _titled_pairs(content: str, title_max: int, body_max: int) -> list[tuple[str, str]]:
    """Extract ``(title, body)`` pairs in the Azure bullet format or ``Title: body`` lines."""
    pairs = []
    for pattern in (_AZURE_BULLET, _TITLED_LINE):
        for match in pattern.finditer(content):
            title = _clean_title(match.group(1))[:title_max]
            body = clean_content(match.group(2))[:body_max]
            if title and body:
                pairs.append((title, body))
        if pairs:
            break
    return pairs


def _list_line_pairs(
    content: str, topic: str, title_max: int, body_max: int,
) -> list[tuple[str, str]]:
    pairs = []
    for line in content.splitlines():
        if not _LIST_LINE.match(line):
            continue
        cleaned = clean_content(_LIST_LINE.sub("", line))
        if len(cleaned) <= 10:
            continue
        if ":" in cleaned:
            title, _, body = cleaned.partition(":")
            pairs.append((title.strip()[:title_max], body.strip()[:body_max]))
        else:
            pairs.append((f"{topic} Point {len(pairs) + 1}", cleaned[:body_max]))
    return pairs


def parse_bullet_points(
    content: Any,
    fallback_topic: str = "treatment",
    count: int = 5,
    *,
    content_max: int = BULLET_CONTENT_MAX,
) -> list[dict[str, str]]:
    """Exactly *count* ``{title, content}`` items parsed from *content*."""
    pairs: list[tuple[str, str]] = []
    if isinstance(content, str) and content.strip():
        pairs = _titled_pairs(content, BULLET_TITLE_MAX, content_max)
        if len(pairs) < 3:
            line_pairs = _list_line_pairs(content, fallback_topic, BULLET_TITLE_MAX, content_max)
            if len(line_pairs) > len(pairs):
                pairs = line_pairs

    bullets = [{"title": t, "content": c} for t, c in pairs[:count]]
    while len(bullets) < count:
        bullets.append(_default_bullet(fallback_topic, len(bullets) + 1))
    return bullets


def parse_steps(
    content: Any, fallback_topic: str = "Step", count: int = 5,
) -> list[dict[str, Any]]:
    """Exactly *count* ``{stepNumber, title, description}`` items."""
    bullets = parse_bullet_points(
        content, fallback_topic, count, content_max=STEP_DESCRIPTION_MAX,
    )
    return [
        {"stepNumber": i, "title": b["title"], "description": b["content"]}
        for i, b in enumerate(bullets, start=1)
    ]


# ── FAQ ──────────────────────────────────────────────────────────────

def _default_faq(service_name: str, index: int) -> tuple[str, str]:
    if index < len(DEFAULT_FAQ_TOPICS):
        topic = DEFAULT_FAQ_TOPICS[index]
        question = f"What should I know about {topic} for {service_name}?"
    else:
        topic = "this treatment"
        question = f"What is question {index + 1} about {service_name}?"
    answer = (
        f"This is important information about {topic} related to {service_name}. "
        "Your dental professional will provide detailed guidance specific to your "
        "individual needs and circumstances during your consultation."
    )
    return question, answer


def parse_faq(
    content: Any,
    service_name: str,
    max_questions: int = 25,
    *,
    pad: bool = True,
) -> list[dict[str, Any]]:
    """``Q: ... A: ...`` pairs as FAQ items.

    With *pad* the result always holds exactly *max_questions* items,
    topped up from the default topic list.
    """
    pairs: list[tuple[str, str]] = []
    if isinstance(content, str) and content.strip():
        for block in _QUESTION_SPLIT.split(content)[1:]:
            match = _ANSWER_SPLIT.match(block)
            if not match:
                continue
            question = clean_content(match.group(1))[:FAQ_QUESTION_MAX]
            answer = clean_content(match.group(2))[:FAQ_ANSWER_MAX]
            if question and answer:
                pairs.append((question, answer))
            if len(pairs) == max_questions:
                break

    if pad:
        while len(pairs) < max_questions:
            pairs.append(_default_faq(service_name, len(pairs)))

    return [
        {"question": q, "answer": a, "category": categorize_faq(q), "order": i}
        for i, (q, a) in enumerate(pairs, start=1)
    ]


# ── Myths and facts ──────────────────────────────────────────────────

def parse_myths_and_facts(
    content: Any, service_name: str, count: int = 5,
) -> list[dict[str, str]]:
    pairs: list[tuple[str, str]] = []
    if isinstance(content, str) and content.strip():
        for match in _MYTH_FACT.finditer(content):
            myth = clean_content(match.group(1))[:MYTH_FACT_MAX]
            fact = clean_content(match.group(2))[:MYTH_FACT_MAX]
            if myth and fact:
                pairs.append((myth, fact))

        if len(pairs) < 3:
            parts = _MYTH_OR_FACT.split(content)
            split_pairs = []
            for i in range(1, len(parts) - 1, 2):
                myth = clean_content(_PAIR_PREFIX.sub("", parts[i]))[:MYTH_FACT_MAX]
                fact = clean_content(_PAIR_PREFIX.sub("", parts[i + 1]))[:MYTH_FACT_MAX]
                if myth and fact:
                    split_pairs.append((myth, fact))
            if len(split_pairs) > len(pairs):
                pairs = split_pairs

    items = [{"myth": m, "fact": f} for m, f in pairs[:count]]
    while len(items) < count:
        items.append({
            "myth": f"Common myth about {service_name} that patients often believe.",
            "fact": f"The actual truth about {service_name} based on current dental science and practice.",
        })
    return items


# ── Aftercare ────────────────────────────────────────────────────────

def parse_aftercare(content: Any) -> list[dict[str, str]]:
    """Between one and five ``{title, description, timeframe}`` instructions."""
    if not isinstance(content, str) or not content.strip():
        return [{
            "title": "Follow Standard Care",
            "description": "Follow standard aftercare procedures.",
            "timeframe": DEFAULT_TIMEFRAME,
        }]

    pairs = _titled_pairs(content, AFTERCARE_TITLE_MAX, AFTERCARE_DESCRIPTION_MAX)
    if not pairs:
        pairs = _list_line_pairs(content, "Care", AFTERCARE_TITLE_MAX, AFTERCARE_DESCRIPTION_MAX)

    items = [
        {"title": t, "description": d, "timeframe": extract_timeframe(f"{t} {d}")}
        for t, d in pairs[:AFTERCARE_MAX_ITEMS]
    ]
    if not items:
        items.append({
            "title": "Follow Care Instructions",
            "description": clean_content(content)[:AFTERCARE_DESCRIPTION_MAX],
            "timeframe": extract_timeframe(content),
        })
    return items


# ── SEO ──────────────────────────────────────────────────────────────

def safe_meta_title(service_name: str) -> str:
    """``"{name} | Dental Care"`` shortened to fit a 60-character title."""
    name = (service_name or "Dental Service").strip()
    max_name = META_TITLE_MAX - len(META_TITLE_SUFFIX)
    if len(name) > max_name:
        name = name[: max_name - 3] + "..."
    return (name + META_TITLE_SUFFIX)[:META_TITLE_MAX]


def _labelled_value(line: str, label: str) -> str:
    """Text after the ``label...:`` prefix of *line*, unquoted."""
    value = re.sub(rf"^.*?{label}[^:]*:\s*", "", line, count=1, flags=re.IGNORECASE)
    return clean_content(value).strip("\"'")


def _lines_mentioning(content: Any, label: str) -> list[str]:
    if not isinstance(content, str):
        return []
    return [line for line in content.splitlines() if label in line.lower()]


def parse_seo_title(content: Any, service_name: str) -> str:
    for line in _lines_mentioning(content, "title"):
        title = _labelled_value(line, "title")
        if 0 < len(title) <= META_TITLE_MAX:
            return title
    return safe_meta_title(service_name)


def parse_seo_description(content: Any) -> str:
    for line in _lines_mentioning(content, "description"):
        description = _labelled_value(line, "description")
        if 50 < len(description) < 160:
            return description
    return DEFAULT_META_DESCRIPTION


def parse_seo_keywords(content: Any, fallback: list[str] | None = None) -> list[str]:
    for line in _lines_mentioning(content, "keyword"):
        keywords = [k.strip() for k in _labelled_value(line, "keyword").split(",")]
        keywords = [k for k in keywords if k]
        if keywords:
            return keywords[:10]
    return list(fallback or [])
