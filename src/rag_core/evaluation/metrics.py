"""Answer quality, groundedness and aggregate metrics for evaluation runs."""

from __future__ import annotations

import re
from collections import Counter
from collections.abc import Mapping
from dataclasses import dataclass, field
from itertools import groupby

from rag_core.config.constants import IGNORANCE_PHRASES
from rag_core.generation.extractive import split_sentences
from rag_core.models.schemas import Citation
from rag_core.signals.tokenizer import tokenize, words

_MARKER_RE = re.compile(r"\[\d+\]")

PASS_THRESHOLD = 0.6
TRAP_CONFIDENCE_MAX = 0.5
HALLUCINATION_COVERAGE_MIN = 0.6
MAX_HALLUCINATION_RATE = 0.5

QUALITY_RECOMMENDATION_BELOW = 0.7
LATENCY_RECOMMENDATION_ABOVE_MS = 2000.0
COST_RECOMMENDATION_ABOVE = 0.02


@dataclass
class QualityScores:
    exact_match: float
    f1: float
    bleu1: float
    rouge1: float
    rouge2: float
    rouge_l: float

    @property
    def overall(self) -> float:
        return (self.f1 + self.rouge1 + self.bleu1) / 3


@dataclass
class EvalCaseResult:
    """Result of running a single evaluation case."""

    case_id: str
    query: str
    category: str
    difficulty: str
    status: str
    answer: str
    confidence: float
    passed: bool
    overall_score: float
    latency_ms: float
    cost: float
    citation_accuracy: float = 0.0
    hallucination_rate: float = 0.0
    quality: QualityScores | None = None
    sources: list[str] = field(default_factory=list)
    error: str | None = None


def answer_tokens(text: str) -> list[str]:
    """Lowercase word tokens with citation markers removed."""
    return words(_MARKER_RE.sub(" ", text))


def exact_match(prediction: str, reference: str) -> float:
    return 1.0 if answer_tokens(prediction) == answer_tokens(reference) else 0.0


def token_f1(prediction: str, reference: str) -> float:
    pred = Counter(answer_tokens(prediction))
    ref = Counter(answer_tokens(reference))
    common = sum((pred & ref).values())
    if common == 0:
        return 0.0
    precision = common / sum(pred.values())
    recall = common / sum(ref.values())
    return 2 * precision * recall / (precision + recall)


def bleu1(prediction: str, reference: str) -> float:
    """Clipped unigram precision."""
    pred = Counter(answer_tokens(prediction))
    total = sum(pred.values())
    if total == 0:
        return 0.0
    clipped = sum((pred & Counter(answer_tokens(reference))).values())
    return clipped / total


def _ngrams(tokens: list[str], n: int) -> Counter:
    return Counter(tuple(tokens[i : i + n]) for i in range(len(tokens) - n + 1))


def rouge_n(prediction: str, reference: str, n: int) -> float:
    """N-gram recall of the reference."""
    ref = _ngrams(answer_tokens(reference), n)
    total = sum(ref.values())
    if total == 0:
        return 0.0
    overlap = sum((ref & _ngrams(answer_tokens(prediction), n)).values())
    return overlap / total


def _lcs_length(a: list[str], b: list[str]) -> int:
    previous = [0] * (len(b) + 1)
    for x in a:
        current = [0]
        for j, y in enumerate(b):
            current.append(previous[j] + 1 if x == y else max(previous[j + 1], current[j]))
        previous = current
    return previous[-1]


def rouge_l(prediction: str, reference: str) -> float:
    """Longest-common-subsequence F-measure."""
    pred = answer_tokens(prediction)
    ref = answer_tokens(reference)
    lcs = _lcs_length(pred, ref)
    if lcs == 0:
        return 0.0
    precision = lcs / len(pred)
    recall = lcs / len(ref)
    return 2 * precision * recall / (precision + recall)


def quality_scores(prediction: str, reference: str) -> QualityScores:
    return QualityScores(
        exact_match=exact_match(prediction, reference),
        f1=token_f1(prediction, reference),
        bleu1=bleu1(prediction, reference),
        rouge1=rouge_n(prediction, reference, 1),
        rouge2=rouge_n(prediction, reference, 2),
        rouge_l=rouge_l(prediction, reference),
    )


def citation_accuracy(citations: list[Citation], source_texts: Mapping[str, str]) -> float:
    """Fraction of citations whose text appears in the source they claim."""
    if not citations:
        return 0.0
    found = 0
    for citation in citations:
        source = source_texts.get(citation.source_id)
        if source is not None and citation.text.strip().lower() in source.lower():
            found += 1
    return found / len(citations)


def hallucination_rate(answer: str, source_texts: list[str]) -> float:
    """Share of answer sentences whose content terms are under 60% covered by the sources."""
    source_words = set(words(" ".join(source_texts)))
    checked = 0
    unsupported = 0
    for sentence in split_sentences(_MARKER_RE.sub(" ", answer)):
        terms = [t for t in tokenize(sentence) if len(t) > 2]
        if not terms:
            continue
        checked += 1
        coverage = sum(1 for t in terms if t in source_words) / len(terms)
        if coverage < HALLUCINATION_COVERAGE_MIN:
            unsupported += 1
    if checked == 0:
        return 0.0
    return unsupported / checked


def admits_not_knowing(answer: str) -> bool:
    lowered = answer.lower()
    return "ne sais pas" in lowered or any(p in lowered for p in IGNORANCE_PHRASES)


def case_passed(
    should_hallucinate: bool,
    has_reference: bool,
    status: str,
    answer: str,
    confidence: float,
    overall: float,
    valid_citations: int,
    hallucination: float,
) -> bool:
    """Trap cases pass when the pipeline declines or is unsure.

    Cases with a reference answer pass on lexical overlap. The rest pass
    when answered with at least one verified citation and few unsupported
    sentences.
    """
    if should_hallucinate:
        return admits_not_knowing(answer) or confidence < TRAP_CONFIDENCE_MAX
    if has_reference:
        return overall > PASS_THRESHOLD
    return (
        status == "answered"
        and valid_citations >= 1
        and hallucination <= MAX_HALLUCINATION_RATE
    )


def _mean(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def compute_metrics(results: list[EvalCaseResult]) -> dict:
    """Aggregate per-case results into the run summary.

    Quality metrics average over cases with a reference answer; groundedness
    over answered cases; latency and cost over every case that ran.
    """
    total = len(results)
    valid = [r for r in results if r.error is None]
    scored = [r for r in valid if r.quality is not None]
    answered = [r for r in valid if r.status == "answered"]
    passed = sum(1 for r in results if r.passed)

    return {
        "total_cases": total,
        "passed": passed,
        "pass_rate": passed / total if total else 0.0,
        "error_count": total - len(valid),
        "overall_score": _mean([r.overall_score for r in scored]),
        "exact_match": _mean([r.quality.exact_match for r in scored]),
        "f1": _mean([r.quality.f1 for r in scored]),
        "bleu1": _mean([r.quality.bleu1 for r in scored]),
        "rouge1": _mean([r.quality.rouge1 for r in scored]),
        "rouge2": _mean([r.quality.rouge2 for r in scored]),
        "rouge_l": _mean([r.quality.rouge_l for r in scored]),
        "citation_accuracy": _mean([r.citation_accuracy for r in answered]),
        "hallucination_rate": _mean([r.hallucination_rate for r in answered]),
        "avg_confidence": _mean([r.confidence for r in valid]),
        "avg_latency_ms": _mean([r.latency_ms for r in valid]),
        "avg_cost": _mean([r.cost for r in valid]),
        "total_cost": sum(r.cost for r in valid),
    }


def compute_category_metrics(results: list[EvalCaseResult]) -> dict[str, dict]:
    """Per-category totals, passes and mean overall score."""
    categories: dict[str, dict] = {}
    for cat, group in groupby(sorted(results, key=lambda r: r.category), key=lambda r: r.category):
        cat_results = list(group)
        categories[cat] = {
            "total": len(cat_results),
            "passed": sum(1 for r in cat_results if r.passed),
            "average_score": _mean([r.overall_score for r in cat_results]),
        }
    return categories


def recommendations(metrics: dict) -> list[str]:
    advice: list[str] = []
    if metrics["overall_score"] < QUALITY_RECOMMENDATION_BELOW:
        advice.append("Improve answer quality with a stronger generation model")
    if metrics["avg_latency_ms"] > LATENCY_RECOMMENDATION_ABOVE_MS:
        advice.append("Reduce latency with caching and faster models")
    if metrics["avg_cost"] > COST_RECOMMENDATION_ABOVE:
        advice.append("Reduce cost by routing simple queries to local models")
    return advice
