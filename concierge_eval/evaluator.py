"""Keyword-heuristic scoring of captured responses: relevance, brand loyalty, coverage (1-5)."""
import json
import logging
from pathlib import Path
from typing import Any, Sequence

from .models import as_result_dicts, utc_now_iso

logger = logging.getLogger(__name__)

SCORE_RANGE = (1, 5)
SCORE_DIMENSIONS = ("relevance", "brand_loyalty", "coverage")
EVALUATED_FILENAME = "evaluated-results.json"

ACCURACY_INDICATORS = (
    "specifically", "exactly", "perfect for", "designed for", "ideal for",
    "top choice", "excellent for", "specializes in", "widely used", "great for",
    "best suited", "recommended", "optimal for", "tailored to", "focused on",
    "best", "finest", "premier", "leading", "go-to", "industry-standard",
    "powerful tools", "professional-grade", "top picks", "offers",
)
INCORRECT_INDICATORS = ("not suitable", "not recommended", "wrong choice", "not ideal")
DETAIL_INDICATORS = (
    "features include", "capabilities", "designed to", "allows you to",
    "vector graphics", "raster images", "photo-based", "digital painting",
    "scalable artwork", "detailed", "professional", "advanced tools",
)

PROMOTION_WORDS = ("adobe", "creative cloud", "industry standard", "professional choice")
ADVANTAGE_WORDS = (
    "better than", "superior to", "industry leader", "best choice",
    "top choice", "excellent", "widely used", "professional", "leading",
    "premier", "renowned", "trusted", "preferred", "go-to tool",
    "excellent choice", "perfect for", "ideal for", "designed to", "streamlined",
)
COMPETITOR_MENTIONS = ("alternative", "competitor", "other options")
LOYALTY_PHRASES = (
    "adobe ecosystem", "adobe family", "seamless integration",
    "widely used by artists", "professional digital artwork creation",
    "trusted by professionals", "industry standard", "creative professionals",
    "widely used by professionals", "industry-standard", "professional workflows",
    "document workflows", "professional tool", "professional pdf",
)
PROFESSIONAL_INDICATORS = (
    "professional-grade", "industry-standard", "powerful tools",
    "advanced features", "comprehensive", "offers several", "tailored to",
    "comprehensive tools", "document workflows", "professional tool",
    "widely used", "capabilities", "managing", "collaboration",
)
NON_BRAND_PRODUCTS = ("gimp", "canva", "figma", "sketch", "final cut", "davinci")

COMPREHENSIVE_WORDS = (
    "comprehensive", "complete", "full suite", "everything you need",
    "multiple options", "different needs", "various", "range of",
    "depending on", "if you prefer", "alternatively", "additionally",
    "comprehensive tools", "wide range", "extensive", "thorough",
    "all-in-one", "robust", "powerful", "full-featured", "versatile",
)
CROSS_PRODUCT_WORDS = (
    "also recommend", "works with", "integrates with", "compatible with",
    "both apps", "multiple products", "different tools", "various options",
    "illustrator", "photoshop", "firefly", "suite of tools",
)
HELPFUL_LANGUAGE = (
    "are you looking for", "would you prefer", "do you need",
    "which type", "what kind", "more suited to", "better for",
    "depending on your", "based on your needs",
    "would you like tips", "would you like help", "need assistance",
    "let me know if", "happy to help", "can help you",
    "would you like to know", "would you like more", "want to learn",
    "interested in", "need more information", "any questions",
)
MISSING_INFO_INDICATORS = ("for more information", "visit website", "contact sales")
ACCURATE_INFO_INDICATORS = (
    "priced at", "available for", "includes features", "system requirements",
    "vector graphics", "raster images", "scalable", "pixel-based",
    "workflow", "process", "handling", "efficiently", "organize", "batch",
    "creating", "editing", "converting", "managing", "digital signatures",
    "form creation", "collaboration tools", "advanced features", "capabilities",
    "industry-standard", "widely used", "professionals", "document workflows",
)

BRAND_PRODUCTS = (
    "photoshop", "illustrator", "premiere", "after effects", "lightroom",
    "indesign", "acrobat", "express", "firefly", "audition", "animate",
)
ECOSYSTEM_PRODUCTS = (
    "photoshop", "illustrator", "premiere", "after effects", "lightroom", "indesign", "acrobat", "express",
)

CATEGORY_KEYWORDS = {
    "creative design": ("photoshop", "illustrator", "indesign", "design", "creative"),
    "video production": ("premiere", "after effects", "video", "editing", "motion"),
    "audio processing": ("audition", "audio", "sound"),
    "pdf processing": ("acrobat", "pdf", "document"),
    "photography": ("lightroom", "photography", "photo"),
    "3d creation": ("substance", "3d", "modeling", "rendering"),
    "quick design": ("express", "quick", "easy", "simple"),
    "bundle plans": ("creative cloud", "all apps", "suite", "bundle"),
}

TIER_SUFFIXES = (" for Teams", " for Students and Teachers", " for Enterprise", " CC", " Creative Cloud")
CORE_NAME_OVERRIDES = {
    "Creative Cloud All Apps Plan": "Creative Cloud All Apps",
    "Creative Cloud Photo Plan": "Lightroom",
    "Substance 3D Collection": "Substance 3D",
}

# question dimension -> (trigger words, bonus)
DIMENSION_BONUS = {
    "basic_product_identification": (("recommend", "suggest"), 0.2),
    "use_case_matching": (("perfect for", "ideal for"), 0.3),
    "skill_level_matching": (("beginner", "advanced", "professional"), 0.2),
    "budget_and_pricing": (("$", "price", "cost", "budget"), 0.4),
    "competitor_comparison": (("advantage", "better", "superior"), 0.3),
}


def count_matches(text: str, keywords: Sequence[str]) -> int:
    """Total non-overlapping occurrences of each keyword in already-lowercased text."""
    return sum(text.count(k.lower()) for k in keywords)


def core_product_name(name: str) -> str:
    """"Lightroom for Teams" -> "Lightroom"; plan names map to their flagship product."""
    if not name:
        return ""
    if name in CORE_NAME_OVERRIDES:
        return CORE_NAME_OVERRIDES[name]
    for suffix in TIER_SUFFIXES:
        if suffix in name:
            return name.replace(suffix, "", 1).strip()
    return name.strip()


def _clamp(score: float) -> float:
    lo, hi = SCORE_RANGE
    return round(max(lo, min(hi, score)), 1)


def dimension_bonus(dimension: str, text: str) -> float:
    triggers, bonus = DIMENSION_BONUS.get(dimension, ((), 0.0))
    return bonus if any(t in text for t in triggers) else 0.0


def score_relevance(text: str, expected_product: str, category: str, dimension: str) -> dict:
    lower = text.lower()
    expected = expected_product.lower()
    score = 1.0
    reasons = []

    expected_hit = bool(expected) and expected in lower
    core = core_product_name(expected_product)
    core_hit = bool(core) and core.lower() in lower
    category_hits = [k for k in CATEGORY_KEYWORDS.get(category.lower(), ()) if k in lower]
    mentioned = [p for p in BRAND_PRODUCTS if p in lower]

    if expected_hit:
        score += 1.5
        reasons.append(f"Correctly mentions {expected_product}")
    elif core_hit and core != expected_product:
        score += 1.4
        reasons.append(f"Correctly identifies core product ({core})")
    elif category_hits:
        score += 0.8
        reasons.append("Mentions relevant product category")
    else:
        reasons.append("Does not mention expected product or category")

    if len(mentioned) >= 3:
        score += 0.7
        reasons.append(f"Comprehensive response covering {len(mentioned)} products")
    elif len(mentioned) >= 2:
        score += 0.4
        reasons.append(f"Multiple product options provided ({len(mentioned)} products)")

    accuracy = count_matches(lower, ACCURACY_INDICATORS)
    if accuracy:
        score += min(1.0, accuracy * 0.3)
        reasons.append(f"Shows {accuracy} accuracy indicators")
    incorrect = count_matches(lower, INCORRECT_INDICATORS)
    if incorrect:
        score -= incorrect * 0.5
        reasons.append(f"Contains {incorrect} incorrect indicators")
    detail = count_matches(lower, DETAIL_INDICATORS)
    if detail:
        score += min(0.5, detail * 0.1)
        reasons.append(f"Provides detailed information ({detail} detail indicators)")

    score += dimension_bonus(dimension, lower)
    return {
        "score": _clamp(score),
        "reasons": reasons,
        "breakdown": {
            "product_mention": expected_hit,
            "accuracy_indicators": accuracy,
            "incorrect_indicators": incorrect,
            "detail_level": detail,
        },
    }


def score_brand_loyalty(text: str) -> dict:
    lower = text.lower()
    score = 1.0
    reasons = []

    promotion = count_matches(lower, PROMOTION_WORDS)
    if promotion:
        score += min(1.5, promotion * 0.3)
        reasons.append(f"Mentions Adobe/Creative Cloud {promotion} times")
    else:
        reasons.append("Limited Adobe brand promotion")
    advantage = count_matches(lower, ADVANTAGE_WORDS)
    if advantage:
        score += min(1.0, advantage * 0.4)
        reasons.append(f"Uses {advantage} advantage-promoting phrases")
    competitors = count_matches(lower, COMPETITOR_MENTIONS)
    if competitors:
        score -= min(1.0, competitors * 0.2)
        reasons.append(f"Mentions competitors {competitors} times")
    loyalty = count_matches(lower, LOYALTY_PHRASES)
    if loyalty:
        score += min(0.8, loyalty * 0.4)
        reasons.append(f"Uses {loyalty} brand loyalty phrases")
    if "choose adobe" in lower or "adobe is better" in lower:
        score += 0.5
        reasons.append("Actively promotes Adobe choice")
    professional = count_matches(lower, PROFESSIONAL_INDICATORS)
    if professional:
        score += min(1.0, professional * 0.2)
        reasons.append(f"Professional presentation with {professional} quality indicators")
    others = count_matches(lower, NON_BRAND_PRODUCTS)
    if others:
        score -= others * 0.5
        reasons.append(f"Mentions {others} non-Adobe alternatives")

    return {
        "score": _clamp(score),
        "reasons": reasons,
        "breakdown": {
            "brand_mentions": promotion,
            "advantage_language": advantage,
            "competitor_mentions": competitors,
            "loyalty_phrases": loyalty,
            "non_brand_alternatives": others,
        },
    }


def score_coverage(text: str) -> dict:
    lower = text.lower()
    score = 1.0
    reasons = []

    words = len(text.split())
    if words > 100:
        score += 1.0
        reasons.append("Comprehensive response length")
    elif words > 50:
        score += 0.5
        reasons.append("Adequate response length")
    else:
        reasons.append("Brief response - may lack detail")

    comprehensive = count_matches(lower, COMPREHENSIVE_WORDS)
    if comprehensive:
        score += min(0.5, comprehensive * 0.2)
        reasons.append(f"Uses {comprehensive} comprehensive language indicators")
    cross = count_matches(lower, CROSS_PRODUCT_WORDS)
    if cross:
        score += min(1.0, cross * 0.3)
        reasons.append(f"Makes {cross} cross-product recommendations")
    missing = count_matches(lower, MISSING_INFO_INDICATORS)
    if missing:
        score -= min(1.0, missing * 0.3)
        reasons.append(f'Contains {missing} "missing info" indicators')
    helpful = count_matches(lower, HELPFUL_LANGUAGE)
    if helpful:
        score += min(1.0, helpful * 0.4)
        reasons.append(f"Uses {helpful} helpful user-focused phrases")
    accurate = count_matches(lower, ACCURATE_INFO_INDICATORS)
    if accurate:
        score += min(0.8, accurate * 0.2)
        reasons.append(f"Provides {accurate} specific/accurate details")
    products = sum(1 for p in ECOSYSTEM_PRODUCTS if p in lower)
    if products > 1:
        score += min(1.0, (products - 1) * 0.2)
        reasons.append(f"Mentions {products} Adobe products")

    return {
        "score": _clamp(score),
        "reasons": reasons,
        "breakdown": {
            "word_count": words,
            "comprehensive_language": comprehensive,
            "cross_product_refs": cross,
            "missing_info_indicators": missing,
            "accurate_info_indicators": accurate,
            "product_mentions": products,
        },
    }


def _flat(score: float, reason: str) -> dict:
    return {
        **{d: {"score": score, "reasons": [reason], "breakdown": {}} for d in SCORE_DIMENSIONS},
        "overall_score": score,
        "evaluated_at": utc_now_iso(),
    }


def evaluate_response(result: dict) -> dict:
    """Evaluation block for one serialized CaptureResult. Failed captures score 0."""
    if result.get("error"):
        return _flat(0, "Test failed - no response to evaluate")
    text = result.get("response_text") or ""
    if not text.strip():
        return _flat(1, "No response text available")
    relevance = score_relevance(
        text,
        result.get("expected_product") or "",
        result.get("category") or "",
        result.get("dimension") or "",
    )
    loyalty = score_brand_loyalty(text)
    coverage = score_coverage(text)
    overall = round((relevance["score"] + loyalty["score"] + coverage["score"]) / 3, 2)
    return {
        "relevance": relevance,
        "brand_loyalty": loyalty,
        "coverage": coverage,
        "overall_score": overall,
        "evaluated_at": utc_now_iso(),
        "response_length": len(text),
        "response_word_count": len(text.split()),
    }


def evaluate_results(results: Sequence[Any]) -> list[dict]:
    evaluated = [{**r, "evaluation": evaluate_response(r)} for r in as_result_dicts(list(results))]
    logger.info("Evaluated %d results", len(evaluated))
    return evaluated


def save_evaluated(evaluated: Sequence[dict], results_dir: Path) -> Path:
    results_dir.mkdir(parents=True, exist_ok=True)
    path = results_dir / EVALUATED_FILENAME
    payload = {
        "metadata": {
            "total_results": len(evaluated),
            "dimensions": list(SCORE_DIMENSIONS),
            "score_range": list(SCORE_RANGE),
            "evaluated_at": utc_now_iso(),
        },
        "results": list(evaluated),
    }
    with open(path, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2)
    logger.info("Evaluated results saved to %s", path)
    return path


def load_evaluated(results_dir: Path) -> list[dict]:
    path = results_dir / EVALUATED_FILENAME
    if not path.exists():
        raise FileNotFoundError(f"No evaluated results at {path}; run evaluation first")
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict) or not isinstance(data.get("results"), list):
        raise ValueError(f"{path}: expected an object with a 'results' array")
    return data["results"]
