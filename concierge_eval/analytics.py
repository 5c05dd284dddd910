"""Aggregate evaluated results into analytics-report.json."""
import json
import logging
from pathlib import Path
from typing import Optional, Sequence, Union

import numpy as np
import pandas as pd

from .evaluator import SCORE_DIMENSIONS
from .models import utc_now_iso

logger = logging.getLogger(__name__)

ANALYTICS_FILENAME = "analytics-report.json"
LOW_SCORE_THRESHOLD = 2.5
CRITICAL_SCORE_THRESHOLD = 2.0
FAST_RESPONSE_MS = 2000
SLOW_RESPONSE_MS = 5000

SCORE_COLUMNS = [*SCORE_DIMENSIONS, "overall"]
# Lower edges, inclusive: [-inf, 2) very_poor ... [4.5, inf) excellent
BAND_EDGES = [-np.inf, 2.0, 3.0, 4.0, 4.5, np.inf]
BAND_LABELS = ["very_poor", "poor", "average", "good", "excellent"]

Results = Union[Sequence[dict], pd.DataFrame]


def results_frame(results: Sequence[dict]) -> pd.DataFrame:
    """One row per evaluated result.

    Score columns are NaN where a dimension was not scored; `valid` is False for
    failed captures and unevaluated rows, which every section below excludes.
    """
    rows = []
    for r in results:
        ev = r.get("evaluation") or {}
        row = {
            "question_id": r.get("question_id"),
            "question": r.get("question") or "",
            "expected_product": r.get("expected_product") or "unknown",
            "category": r.get("category") or "unknown",
            "dimension": r.get("dimension") or "unknown",
            "response_text": r.get("response_text") or "",
            "response_time_ms": r.get("response_time_ms"),
            "extraction_method": r.get("extraction_method") or "",
            "completion_timed_out": bool(r.get("completion_timed_out")),
            "valid": not r.get("error") and bool(ev),
            "overall": ev.get("overall_score"),
            "word_count": ev.get("response_word_count", 0),
        }
        for d in SCORE_DIMENSIONS:
            block = ev.get(d) or {}
            row[d] = block.get("score")
            row[f"{d}_reasons"] = list(block.get("reasons") or [])
        rows.append(row)
    columns = [
        "question_id", "question", "expected_product", "category", "dimension",
        "response_text", "response_time_ms", "extraction_method", "completion_timed_out",
        "valid", "overall", "word_count",
        *SCORE_DIMENSIONS, *(f"{d}_reasons" for d in SCORE_DIMENSIONS),
    ]
    df = pd.DataFrame(rows, columns=columns)
    for col in (*SCORE_COLUMNS, "response_time_ms", "word_count"):
        df[col] = pd.to_numeric(df[col], errors="coerce").astype("float64")
    df["valid"] = df["valid"].astype(bool)
    df["completion_timed_out"] = df["completion_timed_out"].astype(bool)
    return df


def _frame(results: Results) -> pd.DataFrame:
    return results if isinstance(results, pd.DataFrame) else results_frame(results)


def _valid(df: pd.DataFrame) -> pd.DataFrame:
    return df[df["valid"]]


def _round(value: float, digits: int = 2) -> float:
    return 0.0 if pd.isna(value) else round(float(value), digits)


def mean(values) -> float:
    return _round(pd.Series(values, dtype="float64").mean())


def median(values) -> float:
    return _round(pd.Series(values, dtype="float64").median())


def stdev(values) -> float:
    """Population standard deviation."""
    return _round(pd.Series(values, dtype="float64").std(ddof=0))


def distribution(scores) -> dict:
    s = pd.Series(scores, dtype="float64").dropna()
    counts = pd.cut(s, bins=BAND_EDGES, labels=BAND_LABELS, right=False).value_counts()
    return {label: int(counts.get(label, 0)) for label in reversed(BAND_LABELS)}


def performance_label(scores) -> str:
    avg = mean(scores)
    for edge, label in zip(reversed(BAND_EDGES[1:-1]), reversed(BAND_LABELS[1:])):
        if avg >= edge:
            return label
    return BAND_LABELS[0]


def _pct(count: int, total: int, digits: int = 1) -> float:
    return round(100.0 * count / total, digits) if total else 0.0


def _short(text: str, n: int) -> str:
    text = text or ""
    return text[:n] + ("..." if len(text) > n else "")


def _average_scores(df: pd.DataFrame) -> dict:
    return {c: mean(df[c]) for c in SCORE_COLUMNS}


def _row(r: dict, column: str = "overall") -> dict:
    return {
        "question_id": r["question_id"],
        "question": _short(r["question"], 100),
        "product": r["expected_product"],
        "score": float(r[column]),
    }


def _rows(df: pd.DataFrame, column: str = "overall") -> list[dict]:
    return [_row(r, column) for r in df.to_dict("records")]


def _all_reasons(r: dict) -> list[str]:
    return [reason for d in SCORE_DIMENSIONS for reason in r[f"{d}_reasons"]]


def _group_means(df: pd.DataFrame, key: str) -> pd.DataFrame:
    return df.groupby(key, sort=False)[SCORE_COLUMNS].mean().round(2)


def overall_performance(results: Results) -> dict:
    df = _frame(results)
    valid = _valid(df)
    return {
        "average_scores": _average_scores(valid),
        "score_distribution": {c: distribution(valid[c]) for c in SCORE_COLUMNS},
        "total_questions": int(len(df)),
        "successful_tests": int(len(valid)),
        "failure_rate": _pct(len(df) - len(valid), len(df), 2),
        "response_time_stats": response_time_stats(valid),
    }


def dimension_analysis(results: Results, top_n: int = 5) -> dict:
    valid = _valid(_frame(results))
    out = {}
    for d in SCORE_DIMENSIONS:
        ranked = valid.sort_values(d, kind="stable")
        reasons = valid[f"{d}_reasons"].explode().dropna().value_counts()
        out[d] = {
            "average_score": mean(valid[d]),
            "median": median(valid[d]),
            "standard_deviation": stdev(valid[d]),
            "distribution": distribution(valid[d]),
            "top_performers": _rows(ranked.tail(top_n).iloc[::-1], d),
            "bottom_performers": _rows(ranked.head(top_n), d),
            "common_reasons": [{"reason": str(k), "count": int(v)} for k, v in reasons.head(5).items()],
        }
    return out


def group_analysis(results: Results, key: str) -> dict:
    valid = _valid(_frame(results))
    means = _group_means(valid, key)
    out = {}
    for name, group in valid.groupby(key, sort=False):
        ranked = group.sort_values("overall", kind="stable")
        out[str(name)] = {
            "total_questions": int(len(group)),
            "average_scores": {c: _round(means.at[name, c]) for c in SCORE_COLUMNS},
            "performance": performance_label(group["overall"]),
            "top_questions": _rows(ranked.tail(3).iloc[::-1]),
            "challenging_questions": _rows(ranked.head(3)),
        }
    return out


def product_analysis(results: Results) -> dict:
    valid = _valid(_frame(results))
    means = _group_means(valid, "expected_product")
    out = {}
    for name, group in valid.groupby("expected_product", sort=False):
        avgs = {d: _round(means.at[name, d]) for d in SCORE_DIMENSIONS}
        out[str(name)] = {
            "total_questions": int(len(group)),
            "category": group["category"].iloc[0],
            "average_scores": {c: _round(means.at[name, c]) for c in SCORE_COLUMNS},
            "performance": performance_label(group["overall"]),
            "strengths": [f"Strong {d} performance ({s:.2f})" for d, s in avgs.items() if s >= 4.0],
            "weaknesses": [f"Weak {d} performance ({s:.2f})" for d, s in avgs.items() if s < 3.0],
        }
    return out


def response_time_stats(results: Results) -> dict:
    times = _frame(results)["response_time_ms"]
    times = times[times > 0]
    if times.empty:
        return {"average": 0, "median": 0, "min": 0, "max": 0, "fast": 0, "medium": 0, "slow": 0}
    desc = times.describe()
    return {
        "average": _round(desc["mean"]),
        "median": _round(desc["50%"]),
        "min": float(desc["min"]),
        "max": float(desc["max"]),
        "fast": int((times < FAST_RESPONSE_MS).sum()),
        "medium": int(((times >= FAST_RESPONSE_MS) & (times < SLOW_RESPONSE_MS)).sum()),
        "slow": int((times >= SLOW_RESPONSE_MS).sum()),
    }


def performance_metrics(results: Results) -> dict:
    df = _frame(results)
    valid = _valid(df)
    words = valid["word_count"].fillna(0)
    overall = valid["overall"]
    methods = df["extraction_method"].value_counts()
    return {
        "response_time": response_time_stats(valid),
        "response_length": {
            "average_words": mean(words),
            "median_words": median(words),
            "short_responses": int((words < 50).sum()),
            "medium_responses": int(((words >= 50) & (words < 150)).sum()),
            "long_responses": int((words >= 150).sum()),
        },
        "quality": {
            "high": int((overall >= 4).sum()),
            "medium": int(((overall >= 3) & (overall < 4)).sum()),
            "low": int((overall < 3).sum()),
        },
        "extraction_methods": {str(k): int(v) for k, v in methods.items()},
        "captured_after_timeout": int(df["completion_timed_out"].sum()),
    }


def target_achievement(results: Results, targets: dict) -> dict:
    valid = _valid(_frame(results))
    out = {}
    for d in SCORE_DIMENSIONS:
        if d not in targets:
            continue
        current = mean(valid[d])
        out[d] = {
            "current": current,
            "target": targets[d],
            "achieved": current >= targets[d],
            "gap": round(targets[d] - current, 2),
        }
    return out


def low_score_analysis(results: Results) -> dict:
    valid = _valid(_frame(results))
    total = len(valid)
    low_overall = valid[valid["overall"] < LOW_SCORE_THRESHOLD]
    critical = valid[valid["overall"] < CRITICAL_SCORE_THRESHOLD]
    by_dimension = {}
    for d in SCORE_DIMENSIONS:
        low = valid[valid[d] < LOW_SCORE_THRESHOLD].sort_values(d, kind="stable")
        by_dimension[d] = {
            "count": int(len(low)),
            "percentage": _pct(len(low), total),
            "average_score": mean(low[d]),
            "worst_examples": [
                {
                    **_row(r, d),
                    "category": r["category"],
                    "dimension": r["dimension"],
                    "issues": list(r[f"{d}_reasons"]),
                    "response": _short(r["response_text"], 200),
                }
                for r in low.head(3).to_dict("records")
            ],
        }
    patterns = {
        key: {
            str(name): {"count": int(len(group)), "average_score": mean(group["overall"])}
            for name, group in low_overall.groupby(key, sort=False)
        }
        for key in ("category", "dimension", "expected_product")
    }
    return {
        "summary": {
            "total_low_scoring": int(len(low_overall)),
            "total_critical": int(len(critical)),
            "percentage_low_scoring": _pct(len(low_overall), total),
            "percentage_critical": _pct(len(critical), total),
            "low_score_threshold": LOW_SCORE_THRESHOLD,
            "critical_score_threshold": CRITICAL_SCORE_THRESHOLD,
        },
        "by_dimension": by_dimension,
        "critical_issues": [
            {
                "question_id": r["question_id"],
                "question": r["question"],
                "expected_product": r["expected_product"],
                "overall_score": float(r["overall"]),
                "scores": {d: float(r[d]) for d in SCORE_DIMENSIONS},
                "issues": _all_reasons(r),
            }
            for r in critical.to_dict("records")
        ],
        "patterns": patterns,
    }


def insights(results: Results, targets: dict) -> list[dict]:
    valid = _valid(_frame(results))
    if valid.empty:
        return []
    out = []
    overall = mean(valid["overall"])
    if overall >= 4:
        out.append({"type": "positive", "category": "overall_performance",
                    "message": f"Excellent overall performance with an average score of {overall:.2f}"})
    elif overall < 3:
        out.append({"type": "negative", "category": "overall_performance",
                    "message": f"Below-average performance with an average score of {overall:.2f}"})
    for d in SCORE_DIMENSIONS:
        target = targets.get(d)
        if target is None:
            continue
        score = mean(valid[d])
        if score < target - 0.5:
            out.append({"type": "negative", "category": d,
                        "message": f"{d} performance is significantly below target ({score:.2f} vs {target})"})
        elif score >= target + 0.3:
            out.append({"type": "positive", "category": d,
                        "message": f"{d} performance exceeds target ({score:.2f} vs {target})"})
    by_category = _group_means(valid, "category")["overall"]
    for category, score in by_category[by_category < 3].items():
        out.append({"type": "negative", "category": "category_performance",
                    "message": f"{category} category shows poor performance ({score:.2f})"})
    avg_time = response_time_stats(valid)["average"]
    if avg_time > SLOW_RESPONSE_MS:
        out.append({"type": "negative", "category": "performance",
                    "message": f"Average response time is high ({avg_time / 1000:.1f}s)"})
    return out


def build_analytics(results: Sequence[dict], targets: Optional[dict] = None) -> dict:
    targets = targets or {}
    df = results_frame(results)
    valid_count = int(df["valid"].sum())
    report = {
        "metadata": {
            "total_results": int(len(df)),
            "successful_tests": valid_count,
            "failed_tests": int(len(df)) - valid_count,
            "generated_at": utc_now_iso(),
        },
        "overall_performance": overall_performance(df),
        "dimension_analysis": dimension_analysis(df),
        "category_analysis": group_analysis(df, "category"),
        "question_type_analysis": group_analysis(df, "dimension"),
        "product_analysis": product_analysis(df),
        "performance_metrics": performance_metrics(df),
        "target_achievement": target_achievement(df, targets),
        "low_score_analysis": low_score_analysis(df),
        "insights": insights(df, targets),
    }
    logger.info("Analytics built for %d results (%d scored)", len(df), valid_count)
    return report


def save_analytics(report: dict, reports_dir: Path) -> Path:
    reports_dir.mkdir(parents=True, exist_ok=True)
    path = reports_dir / ANALYTICS_FILENAME
    with open(path, "w", encoding="utf-8") as f:
        json.dump(report, f, indent=2)
    logger.info("Analytics saved to %s", path)
    return path
