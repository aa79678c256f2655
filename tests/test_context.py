from agent_brain.context import analyze_prompt, build_history, infer_complexity
from agent_brain.memory import SemanticMatch
from agent_brain.models import Complexity, InteractionRecord


def _record(prompt, response="done"):
    return InteractionRecord(
        agent_id="a",
        prompt=prompt,
        response=response,
        task_type="triage",
        complexity=Complexity.SIMPLE,
        provider="ollama",
        success=True,
    )


def test_infer_complexity_map():
    assert infer_complexity("triage") is Complexity.SIMPLE
    assert infer_complexity("document_analysis") is Complexity.MODERATE
    assert infer_complexity("legal_reasoning") is Complexity.COMPLEX
    assert infer_complexity("something_new") is Complexity.MODERATE


def test_build_history_orders_turns_and_summarises_similar():
    similar = [
        SemanticMatch("x", 0.9, {"task_type": "triage", "provider": "ollama", "success": True}),
        SemanticMatch("y", 0.8, {"task_type": "triage", "provider": "openai", "success": False}),
    ]
    history = build_history([_record("one"), _record("two", response=None)], similar)
    assert history[:3] == [
        {"role": "user", "content": "one"},
        {"role": "assistant", "content": "done"},
        {"role": "user", "content": "two"},
    ]
    assert history[3]["role"] == "system"
    assert "ollama" in history[3]["content"]
    assert "openai" not in history[3]["content"]


def test_build_history_limits_recent_turns():
    recent = [_record(f"p{i}") for i in range(6)]
    history = build_history(recent, [], max_messages=2)
    assert [m["content"] for m in history if m["role"] == "user"] == ["p4", "p5"]


def test_build_history_empty():
    assert build_history([], []) == []


def test_analyze_prompt_entities_and_topics():
    text = "Jane Doe owes $1,250.00 under the contract for case 2024D001234 filed 2024-03-15 in court"
    analysis = analyze_prompt(text)
    entities = {(e["type"], e["value"]) for e in analysis["entities"]}
    assert ("person", "Jane Doe") in entities
    assert ("amount", "$1,250.00") in entities
    assert ("case_number", "2024D001234") in entities
    assert ("date", "2024-03-15") in entities
    categories = {t["category"] for t in analysis["topics"]}
    assert categories == {"legal", "business"}


def test_analyze_prompt_technical_keywords_are_case_insensitive():
    topics = analyze_prompt("The API integration is down")["topics"]
    assert {t["keyword"] for t in topics} == {"api", "integration"}
    assert all(t["relevance"] == 0.6 for t in topics)
