"""
Prompt construction for the LLM-backed question oracle.

Turns an OracleRequest into chat messages. The reply format is fixed JSON so
`qna.oracle.client.normalize_response` can validate it.
"""

from __future__ import annotations

import json

from qna.types import OracleMode, TraversalMode
from .schemas import OracleRequest

SYSTEM_PROMPT = (
    "You are an expert design assistant that interviews a user about a design prompt. "
    "Your questions are clear, concise, and focused on gathering detailed design requirements. "
    "Never repeat a question that appears in the history. Always answer with a single JSON object."
)

RESPONSE_SCHEMA = """{
  "questions": ["<one follow-up question>"],
  "shouldStopBranch": false,
  "stopReason": "",
  "suggestedAnswer": null,
  "sourceReferences": [],
  "confidence": "high" | "medium" | "low",
  "topicsCovered": ["..."],
  "parentTopic": "",
  "subtopics": ["..."]
}"""

_MODE_GUIDANCE = {
    TraversalMode.BFS: (
        "The interview runs breadth-first: cover the remaining aspects of the current level "
        "before going deeper. Prefer questions about aspects nobody has asked about yet."
    ),
    TraversalMode.DFS: (
        "The interview runs depth-first: drill into the details of the most recent answer. "
        "Set shouldStopBranch to true when this branch has been explored enough."
    ),
}


def _format_history(request: OracleRequest) -> str:
    if not request.answered_history:
        return "(no questions answered yet)"
    lines = []
    for i, entry in enumerate(request.answered_history, 1):
        topics = f" [topics: {', '.join(entry.topics)}]" if entry.topics else ""
        lines.append(f"{i}. Q: {entry.question}\n   A: {entry.answer or '(unanswered)'}{topics}")
    return "\n".join(lines)


def _format_knowledge(request: OracleRequest) -> str:
    if not request.knowledge_base:
        return ""
    blocks = []
    for i, excerpt in enumerate(request.knowledge_base):
        fields = json.dumps(excerpt.extracted_fields, indent=2)
        blocks.append(f"[{i}] {excerpt.name} ({excerpt.type}):\n{fields}")
    return "\nKNOWLEDGE BASE (cite entries by index in sourceReferences):\n" + "\n".join(blocks) + "\n"


def _format_parent(request: OracleRequest) -> str:
    parent = request.parent_context
    if parent is None:
        return "\nThis is a new top-level question about the design as a whole.\n"
    text = f"\nPARENT QUESTION: {parent.parent_question}\n"
    if parent.parent_answer:
        text += f"PARENT ANSWER: {parent.parent_answer}\n"
    if parent.parent_topics:
        text += f"PARENT TOPICS: {', '.join(parent.parent_topics)}\n"
    if parent.sibling_questions:
        text += "ALREADY ASKED AT THIS LEVEL:\n" + "\n".join(f"- {q}" for q in parent.sibling_questions) + "\n"
    if parent.uncovered_aspects:
        text += "ASPECTS NOT YET COVERED:\n" + "\n".join(f"- {a}" for a in parent.uncovered_aspects) + "\n"
    return text


def build_messages(request: OracleRequest) -> list[dict[str, str]]:
    """Chat messages for either oracle mode."""
    if request.mode == OracleMode.SUGGEST_ANSWER:
        task = (
            f"TASK: Suggest the most likely answer to the current question:\n\"{request.current_question}\"\n"
            "Base it on the design prompt, the earlier answers and the knowledge base. "
            "Put it in suggestedAnswer, set confidence, and leave questions empty."
        )
    else:
        covered = ""
        if request.covered_topics:
            covered = f"Topics already covered: {', '.join(request.covered_topics)}.\n"
        task = (
            f"TASK: Generate one clear follow-up question for depth {request.depth} of the interview.\n"
            f"{covered}{_MODE_GUIDANCE[request.traversal_mode]}\n"
            "If nothing useful is left to ask here, return no questions and set shouldStopBranch "
            "to true with a stopReason."
        )

    user = f"""DESIGN PROMPT: "{request.design_prompt}"

PREVIOUS Q&A:
{_format_history(request)}
{_format_knowledge(request)}{_format_parent(request)}
{task}

Respond with JSON only, in this shape:
{RESPONSE_SCHEMA}
"""
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": user},
    ]
