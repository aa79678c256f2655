"""Turn recalled memory into chat history and lightweight prompt analysis."""

from __future__ import annotations

import re
from typing import Any, Dict, List, Sequence

from agent_brain.memory import SemanticMatch
from agent_brain.models import Complexity, InteractionRecord

COMPLEXITY_BY_TASK = {
    "email_routing": Complexity.SIMPLE,
    "triage": Complexity.SIMPLE,
    "summarization": Complexity.SIMPLE,
    "document_analysis": Complexity.MODERATE,
    "legal_reasoning": Complexity.COMPLEX,
    "code_generation": Complexity.COMPLEX,
}

TOPIC_KEYWORDS = {
    "legal": (
        1.0,
        [
            "divorce",
            "litigation",
            "evidence",
            "court",
            "case",
            "attorney",
            "counsel",
            "filing",
            "discovery",
            "motion",
            "trial",
            "settlement",
        ],
    ),
    "business": (
        0.8,
        ["contract", "agreement", "payment", "invoice", "transaction", "financial"],
    ),
    "technical": (
        0.6,
        ["database", "api", "system", "integration", "deployment", "service"],
    ),
}

ENTITY_PATTERNS = [
    ("case_number", re.compile(r"\b\d{4}[A-Z]\d+\b")),
    ("person", re.compile(r"\b[A-Z][a-z]+(?: [A-Z][a-z]+)+\b")),
    ("amount", re.compile(r"\$[\d,]+(?:\.\d{2})?")),
    ("date", re.compile(r"\b\d{4}-\d{2}-\d{2}\b|\b\d{1,2}/\d{1,2}/\d{4}\b")),
]


def infer_complexity(task_type: str) -> Complexity:
    return COMPLEXITY_BY_TASK.get(task_type, Complexity.MODERATE)


def similar_summary(similar: Sequence[SemanticMatch]) -> str | None:
    lines = [
        f"- Successfully handled {m.metadata.get('task_type')} using {m.metadata.get('provider')}"
        f" (similarity: {m.similarity:.2f})"
        for m in similar
        if m.metadata.get("success")
    ]
    if not lines:
        return None
    return "\n".join(["Based on similar past interactions:", *lines])


def build_history(
    recent: Sequence[InteractionRecord],
    similar: Sequence[SemanticMatch],
    max_messages: int = 10,
) -> List[Dict[str, str]]:
    """Chat messages preceding the current prompt.

    Recent successful turns become user/assistant pairs, newest last, and
    successful similar experiences are summarised in one system message.
    """
    messages: List[Dict[str, str]] = []
    for record in list(recent)[-max_messages:]:
        messages.append({"role": "user", "content": record.prompt})
        if record.response:
            messages.append({"role": "assistant", "content": record.response})
    summary = similar_summary(similar)
    if summary:
        messages.append({"role": "system", "content": summary})
    return messages


def analyze_prompt(text: str) -> Dict[str, Any]:
    entities = [
        {"type": kind, "value": match.group(0)}
        for kind, pattern in ENTITY_PATTERNS
        for match in pattern.finditer(text)
    ]
    lowered = text.lower()
    topics = [
        {"category": category, "keyword": keyword, "relevance": relevance}
        for category, (relevance, keywords) in TOPIC_KEYWORDS.items()
        for keyword in keywords
        if keyword in lowered
    ]
    return {"entities": entities, "topics": topics}


__all__ = ["build_history", "analyze_prompt", "infer_complexity", "similar_summary"]
