"""Run the evaluation battery in-process against the reference corpus.

Usage:
    python scripts/run_eval.py [--user-id ID] [--concurrency N] [--output PATH]

Uses Gemini when RAG_GOOGLE_API_KEY is set, the local extractive generator otherwise.
"""

from __future__ import annotations

import argparse
import asyncio
import json
from dataclasses import asdict
from pathlib import Path

from rag_core.config.settings import Settings
from rag_core.evaluation.metrics import EvalCaseResult
from rag_core.evaluation.runner import EvaluationResult
from rag_core.observability.logger import setup_logging
from rag_core.pipeline.factory import build_services


def print_header(title: str) -> None:
    print(f"\n{'=' * 64}")
    print(f"  {title}")
    print(f"{'=' * 64}")


def print_summary(metrics: dict) -> None:
    print_header("EVALUATION SUMMARY")
    print(f"  Total cases:          {metrics['total_cases']}")
    print(f"  Passed:               {metrics['passed']} ({metrics['pass_rate']:.1%})")
    print(f"  Errors:               {metrics['error_count']}")
    print(f"  Overall score:        {metrics['overall_score']:.4f}")
    print(f"  Exact match:          {metrics['exact_match']:.4f}")
    print(f"  F1:                   {metrics['f1']:.4f}")
    print(f"  BLEU-1:               {metrics['bleu1']:.4f}")
    print(f"  ROUGE-1/2/L:          {metrics['rouge1']:.4f} / {metrics['rouge2']:.4f} / {metrics['rouge_l']:.4f}")
    print(f"  Citation accuracy:    {metrics['citation_accuracy']:.1%}")
    print(f"  Hallucination rate:   {metrics['hallucination_rate']:.1%}")
    print(f"  Avg confidence:       {metrics['avg_confidence']:.4f}")
    print(f"  Avg latency:          {metrics['avg_latency_ms']:.0f} ms")
    print(f"  Total cost:           ${metrics['total_cost']:.4f}")


def print_category_breakdown(by_category: dict) -> None:
    print_header("PER-CATEGORY BREAKDOWN")
    print(f"  {'Category':<16} {'Total':>5} {'Passed':>7} {'Avg score':>10}")
    print(f"  {'-' * 41}")
    for cat, m in sorted(by_category.items()):
        print(f"  {cat:<16} {m['total']:>5} {m['passed']:>7} {m['average_score']:>10.4f}")


def print_case_details(results: list[EvalCaseResult]) -> None:
    print_header("INDIVIDUAL CASE RESULTS")
    for r in results:
        if r.error:
            status = "ERROR"
        elif r.passed:
            status = "PASS"
        else:
            status = "FAIL"

        print(
            f"  [{status:>5}] {r.case_id:<12} | {r.status:<14} | "
            f"score={r.overall_score:.3f} conf={r.confidence:.3f} "
            f"halluc={r.hallucination_rate:.2f}"
        )
        if r.error:
            print(f"         error: {r.error}")


def print_recommendations(recommendations: list[str]) -> None:
    if not recommendations:
        return
    print_header("RECOMMENDATIONS")
    for line in recommendations:
        print(f"  - {line}")


def save_results(result: EvaluationResult, output_path: Path) -> None:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w") as f:
        json.dump(asdict(result), f, indent=2, default=str, ensure_ascii=False)
    print(f"\nRaw results saved to {output_path}")


async def main(user_id: str, concurrency: int | None, output_path: Path) -> None:
    settings = Settings()
    if concurrency is not None:
        settings = settings.model_copy(update={"eval_concurrency": concurrency})
    setup_logging(settings.log_level, settings.log_json)

    services = build_services(settings)
    print(f"Running {len(services.harness.cases)} cases over {services.index.size} reference chunks ...")

    result = await services.harness.run_evaluation(user_id=user_id)

    print_summary(result.metrics)
    print_category_breakdown(result.category_breakdown)
    print_case_details(result.results)
    print_recommendations(result.recommendations)

    save_results(result, output_path)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Run the RAG evaluation battery")
    parser.add_argument("--user-id", default="evaluation", help="User id attached to each request")
    parser.add_argument(
        "--concurrency",
        type=int,
        default=None,
        help="Maximum cases in flight (default: RAG_EVAL_CONCURRENCY)",
    )
    parser.add_argument(
        "--output",
        default="data/eval_results.json",
        help="Path to save raw results JSON (default: data/eval_results.json)",
    )
    args = parser.parse_args()
    asyncio.run(main(args.user_id, args.concurrency, Path(args.output)))
