"""Labeled evaluation cases."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from rag_core.models.schemas import ConversationTurn

EvalCategory = Literal["factual", "procedural", "comparative", "temporal", "trap", "complex"]
Difficulty = Literal["easy", "medium", "hard"]


@dataclass(frozen=True)
class EvalCase:
    id: str
    query: str
    category: EvalCategory
    difficulty: Difficulty
    should_hallucinate: bool = False
    expected_answer: str | None = None
    expected_sources: tuple[str, ...] = ()
    context: tuple[ConversationTurn, ...] = ()


# Trap cases have no supporting document; the pipeline is expected to decline.
DEFAULT_CASES: tuple[EvalCase, ...] = (
    EvalCase(
        id="fact_001",
        query="Quelle est la capitale de la France?",
        expected_answer="Paris",
        expected_sources=("geo_france",),
        category="factual",
        difficulty="easy",
    ),
    EvalCase(
        id="fact_002",
        query="Combien y a-t-il de jours dans une année bissextile?",
        expected_answer="366 jours",
        expected_sources=("cal_leap_year",),
        category="factual",
        difficulty="easy",
    ),
    EvalCase(
        id="proc_001",
        query="Comment faire cuire un œuf à la coque?",
        expected_sources=("cook_soft_egg",),
        category="procedural",
        difficulty="medium",
    ),
    EvalCase(
        id="trap_001",
        query="Quel est le nom du chien de mon voisin?",
        category="trap",
        difficulty="easy",
        should_hallucinate=True,
    ),
    EvalCase(
        id="trap_002",
        query="Quelle sera la météo demain à Tokyo?",
        category="trap",
        difficulty="medium",
        should_hallucinate=True,
    ),
    EvalCase(
        id="complex_001",
        query="Compare les avantages et inconvénients de l'énergie solaire versus l'énergie nucléaire",
        expected_sources=("energy_solar", "energy_nuclear"),
        category="complex",
        difficulty="hard",
    ),
    EvalCase(
        id="temp_001",
        query="Que s'est-il passé en 1969 dans l'exploration spatiale?",
        expected_sources=("space_1969",),
        category="temporal",
        difficulty="medium",
    ),
    EvalCase(
        id="multi_001",
        query="Si je veux visiter la capitale du pays où se trouve le Mont Fuji, où dois-je aller?",
        expected_answer="Tokyo",
        expected_sources=("geo_fuji", "geo_japan"),
        category="complex",
        difficulty="hard",
    ),
)
