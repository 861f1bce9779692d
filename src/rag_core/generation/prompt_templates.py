"""Prompt templates for the generation backends."""

ANSWER_GENERATION_SYSTEM = """You are a precise, factual assistant. Answer questions using ONLY the provided evidence.
Rules:
- Cite evidence using [1], [2], etc. markers matching the evidence numbers.
- If the evidence doesn't contain enough information, say so clearly.
- Never make up information not present in the evidence.
- Answer in {language_name}.
- Be {style}."""

ANSWER_GENERATION_PROMPT = """Question: {query}

Evidence:
{evidence_block}

Expected answer shape: {answer_type}.
Provide a clear, well-cited answer based on the evidence above."""

LANGUAGE_NAMES = {"fr": "French", "en": "English"}

ANSWER_STYLES = {
    "short": "concise and direct",
    "explanation": "clear and explanatory",
    "list": "structured as a short list",
    "comparison": "balanced, contrasting each side",
    "process": "ordered step by step",
}


def format_evidence_block(chunks: list, max_chunks: int = 10) -> str:
    """Format chunks as a numbered evidence block for prompts."""
    lines = []
    for i, chunk in enumerate(chunks[:max_chunks], 1):
        lines.append(f"[{i}] {chunk.content}")
    return "\n\n".join(lines)
