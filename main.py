#!/usr/bin/env python3
"""CLI entrypoint: fetch products, generate questions, capture concierge responses, score, report."""
import argparse
import asyncio
import sys
from pathlib import Path
from typing import Optional

import requests

from concierge_eval.analytics import build_analytics, save_analytics
from concierge_eval.config import AppConfig
from concierge_eval.evaluator import evaluate_results, load_evaluated, save_evaluated
from concierge_eval.metrics import load_results
from concierge_eval.products import Catalog, ProductFetcher
from concierge_eval.questions import QuestionGenerator, count_questions, load_questions, save_questions, select_questions
from concierge_eval.runner import run_capture, setup_logging


def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--out-dir", type=Path, default=None, help="Data directory (default: data, or CONCIERGE_OUTPUT_DIR)")
    common.add_argument("--url", type=str, default=None, help="Concierge page URL (default: CONCIERGE_URL or built-in)")
    common.add_argument("--headful", action="store_true", help="Run browser visible")
    common.add_argument("--slowmo", type=int, default=0, metavar="MS", help="Slow down browser operations by MS milliseconds")
    common.add_argument("--block-resources", action="store_true", help="Block images/fonts/media")
    common.add_argument("--seed", type=int, default=None, help="Random seed for question generation")

    capture = argparse.ArgumentParser(add_help=False)
    capture.add_argument("-l", "--limit", type=int, default=None, help="Limit number of questions to test")
    capture.add_argument("-p", "--parallel", action="store_true", help="Run questions in parallel browser sessions")
    capture.add_argument("--concurrency", type=int, default=None, metavar="N", help="Sessions per batch in parallel mode (default: 3)")

    parser = argparse.ArgumentParser(prog="concierge-eval", description="Automated evaluation of a brand concierge chat widget")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("run", parents=[common, capture], help="Run complete evaluation pipeline")
    p.add_argument("-r", "--refresh-products", action="store_true", help="Refresh product data from source")
    p.add_argument("-q", "--regenerate-questions", action="store_true", help="Regenerate questions")
    p.add_argument("--skip-testing", action="store_true", help="Skip automated testing (evaluate existing results)")
    p.add_argument("--skip-evaluation", action="store_true", help="Skip response evaluation")
    p.add_argument("--skip-analytics", action="store_true", help="Skip analytics generation")
    p.set_defaults(func=cmd_run)

    p = sub.add_parser("fetch", parents=[common], help="Fetch product data only")
    p.add_argument("-r", "--refresh", action="store_true", help="Ignore the local cache")
    p.set_defaults(func=cmd_fetch)

    p = sub.add_parser("questions", parents=[common], help="Generate questions only")
    p.add_argument("-r", "--regenerate", action="store_true", help="Regenerate even if a questions file exists")
    p.set_defaults(func=cmd_questions)

    p = sub.add_parser("test", parents=[common, capture], help="Run testing only")
    p.set_defaults(func=cmd_test)

    p = sub.add_parser("evaluate", parents=[common], help="Evaluate existing test results")
    p.set_defaults(func=cmd_evaluate)

    p = sub.add_parser("analytics", parents=[common], help="Generate analytics from evaluated results")
    p.set_defaults(func=cmd_analytics)
    return parser


def config_from_args(args: argparse.Namespace) -> AppConfig:
    cfg = AppConfig.from_env()
    if args.out_dir is not None:
        cfg.output.base_dir = args.out_dir
        cfg.output.reports_dir = args.out_dir / "reports"
        cfg.products.local_path = args.out_dir / "products" / "product-data.json"
    if args.url:
        cfg.capture.url = args.url.strip()
    if args.headful:
        cfg.browser.headless = False
    if args.slowmo:
        cfg.browser.slow_mo = args.slowmo
    if args.block_resources:
        cfg.browser.block_resources = True
    if getattr(args, "concurrency", None):
        cfg.execution.concurrency = args.concurrency
    return cfg


def resolve_concurrency(args: argparse.Namespace, cfg: AppConfig) -> int:
    """Sequential (one reused session) unless --parallel."""
    return cfg.execution.concurrency if getattr(args, "parallel", False) else 1


def load_catalog(cfg: AppConfig, refresh: bool = False) -> Catalog:
    catalog = ProductFetcher(cfg.products).catalog(refresh=refresh)
    print(f"Loaded {catalog.total_count} products; categories: {', '.join(catalog.by_category)}", file=sys.stderr)
    return catalog


def load_or_generate(cfg: AppConfig, catalog: Catalog, regenerate: bool, seed: Optional[int]) -> list[dict]:
    groups = None if regenerate else load_questions(cfg.output.questions_dir)
    if groups is None:
        groups = QuestionGenerator(seed=seed).generate_all(catalog.products)
        save_questions(groups, cfg.output.questions_dir, seed=seed)
    print(f"{count_questions(groups)} questions for {len(groups)} products", file=sys.stderr)
    return groups


def run_testing(args: argparse.Namespace, cfg: AppConfig, groups: list[dict]) -> None:
    questions = select_questions(groups, args.limit)
    concurrency = resolve_concurrency(args, cfg)
    mode = f"parallel (concurrency {concurrency})" if concurrency > 1 else "sequential"
    print(f"Testing {len(questions)} questions, {mode}", file=sys.stderr)
    _, stats = asyncio.run(run_capture(questions, cfg, concurrency=concurrency))
    print(f"Testing done in {stats.total_seconds:.1f}s: {stats.summary_line()}", file=sys.stderr)


def run_evaluation(cfg: AppConfig) -> list[dict]:
    _, results = load_results(cfg.output.results_dir / "test-results.json")
    evaluated = evaluate_results(results)
    path = save_evaluated(evaluated, cfg.output.results_dir)
    print(f"Wrote {path}", file=sys.stderr)
    return evaluated


def run_analytics(cfg: AppConfig, evaluated: Optional[list[dict]] = None) -> dict:
    if evaluated is None:
        evaluated = load_evaluated(cfg.output.results_dir)
    report = build_analytics(evaluated, cfg.targets)
    path = save_analytics(report, cfg.output.reports_dir)
    print(f"Wrote {path}", file=sys.stderr)
    avg = report["overall_performance"]["average_scores"]
    print(
        f"Averages: relevance {avg['relevance']}, brand loyalty {avg['brand_loyalty']}, "
        f"coverage {avg['coverage']}, overall {avg['overall']}",
        file=sys.stderr,
    )
    for insight in report["insights"][:3]:
        print(f"  - {insight['message']}", file=sys.stderr)
    return report


def cmd_run(args: argparse.Namespace, cfg: AppConfig) -> int:
    catalog = load_catalog(cfg, refresh=args.refresh_products)
    groups = load_or_generate(cfg, catalog, args.regenerate_questions, args.seed)
    if not args.skip_testing:
        run_testing(args, cfg, groups)
    evaluated = None
    if not args.skip_evaluation:
        evaluated = run_evaluation(cfg)
    if not args.skip_analytics:
        run_analytics(cfg, evaluated)
    return 0


def cmd_fetch(args: argparse.Namespace, cfg: AppConfig) -> int:
    load_catalog(cfg, refresh=args.refresh)
    return 0


def cmd_questions(args: argparse.Namespace, cfg: AppConfig) -> int:
    catalog = load_catalog(cfg)
    load_or_generate(cfg, catalog, args.regenerate, args.seed)
    return 0


def cmd_test(args: argparse.Namespace, cfg: AppConfig) -> int:
    catalog = load_catalog(cfg)
    groups = load_or_generate(cfg, catalog, False, args.seed)
    run_testing(args, cfg, groups)
    return 0


def cmd_evaluate(args: argparse.Namespace, cfg: AppConfig) -> int:
    run_evaluation(cfg)
    return 0


def cmd_analytics(args: argparse.Namespace, cfg: AppConfig) -> int:
    run_analytics(cfg)
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    cfg = config_from_args(args)
    setup_logging(cfg.output.base_dir)
    print(f"Output: {cfg.output.base_dir}", file=sys.stderr)
    try:
        return args.func(args, cfg)
    except KeyboardInterrupt:
        print("\nInterrupted by user.", file=sys.stderr)
        return 1
    except (OSError, ValueError, requests.RequestException) as e:
        # Individual question failures never get here; only orchestration errors do
        print(f"Failed: {e}", file=sys.stderr)
        return 1


def cli() -> None:
    sys.exit(main())


if __name__ == "__main__":
    cli()
