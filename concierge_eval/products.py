"""Product catalog: HTTP fetch with a local JSON cache, normalization, categorization."""
import json
import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Optional

import requests

from .config import ProductSource

logger = logging.getLogger(__name__)

FETCH_USER_AGENT = "Brand-Concierge-Evaluator/1.0.0"

# First matching category wins, so order matters
CATEGORY_KEYWORDS: list[tuple[str, tuple[str, ...]]] = [
    ("Creative Design", ("photoshop", "illustrator", "indesign", "graphic", "design")),
    ("Video Production", ("premiere", "after effects", "animate", "video", "motion")),
    ("Audio Processing", ("audition", "audio", "sound")),
    ("PDF Processing", ("acrobat", "pdf", "document")),
    ("Photography", ("lightroom", "photography", "photo")),
    ("3D Creation", ("substance", "3d", "dimension", "stager", "painter", "sampler")),
    ("Quick Design", ("express", "spark", "quick")),
    ("Bundle Plans", ("creative cloud", "all apps", "bundle", "suite")),
    ("Web Development", ("dreamweaver", "web", "html", "css")),
    ("Experience Design", ("xd", "experience", "ux", "ui")),
]
OTHER_CATEGORY = "Other"


@dataclass
class Product:
    id: str
    name: str
    description: str = ""
    category: str = OTHER_CATEGORY
    target_users: list = field(default_factory=list)
    pricing: Any = field(default_factory=dict)
    features: list = field(default_factory=list)
    platforms: list = field(default_factory=list)
    learn_more_url: str = ""
    free_trial_url: str = ""
    buy_url: str = ""
    tags: list = field(default_factory=list)
    skill_level: str = "all"
    use_cases: list = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class Catalog:
    products: list[Product]
    by_category: dict[str, list[Product]]

    @property
    def total_count(self) -> int:
        return len(self.products)


def determine_category(raw: dict) -> str:
    name = str(raw.get("name") or raw.get("title") or "").lower()
    description = str(raw.get("description") or raw.get("desc") or "").lower()
    combined = f"{name} {description}"
    for category, keywords in CATEGORY_KEYWORDS:
        if any(k in combined for k in keywords):
            return category
    return OTHER_CATEGORY


def _as_list(value: Any) -> list:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    if isinstance(value, str):
        return [v.strip() for v in value.split(",") if v.strip()] if "," in value else ([value] if value else [])
    return [value]


def normalize_product(raw: dict, fallback_id: str) -> Product:
    return Product(
        id=str(raw.get("id") or fallback_id),
        name=str(raw.get("name") or raw.get("title") or "Unknown Product"),
        description=str(raw.get("description") or raw.get("desc") or ""),
        category=determine_category(raw),
        target_users=_as_list(raw.get("targetUsers") or raw.get("audience")),
        pricing=raw.get("pricing") or raw.get("price") or {},
        features=_as_list(raw.get("features")),
        platforms=_as_list(raw.get("platforms") or raw.get("platform")),
        learn_more_url=str(raw.get("learnMoreUrl") or raw.get("url") or ""),
        free_trial_url=str(raw.get("freeTrialUrl") or ""),
        buy_url=str(raw.get("buyUrl") or ""),
        tags=_as_list(raw.get("tags")),
        skill_level=str(raw.get("skillLevel") or "all"),
        use_cases=_as_list(raw.get("useCase") or raw.get("useCases")),
    )


def parse_products(raw: Any) -> list[Product]:
    """
    Accepts a list of product objects, an object keyed by product id, or a
    sheet-style {"data": [...]} wrapper. Non-object entries are skipped.
    """
    if isinstance(raw, dict) and isinstance(raw.get("data"), list):
        raw = raw["data"]
    if isinstance(raw, list):
        items = [(str(i), p) for i, p in enumerate(raw)]
    elif isinstance(raw, dict):
        items = list(raw.items())
    else:
        raise ValueError(f"Invalid product data format: {type(raw).__name__}")
    products = [normalize_product(p, key) for key, p in items if isinstance(p, dict)]
    logger.info("Parsed %d products", len(products))
    return products


def categorize(products: list[Product]) -> dict[str, list[Product]]:
    grouped: dict[str, list[Product]] = {}
    for p in products:
        grouped.setdefault(p.category, []).append(p)
    for category, items in grouped.items():
        logger.debug("  %s: %d products", category, len(items))
    return grouped


class ProductFetcher:
    def __init__(self, source: Optional[ProductSource] = None, session: Optional[requests.Session] = None):
        self.source = source or ProductSource()
        self.http = session or requests.Session()

    def fetch(self) -> Any:
        """Download product JSON and write it to the local cache. HTTP errors propagate."""
        logger.info("Fetching product data from %s", self.source.url)
        resp = self.http.get(
            self.source.url,
            timeout=self.source.timeout_s,
            headers={"Accept": "application/json", "User-Agent": FETCH_USER_AGENT},
        )
        resp.raise_for_status()
        data = resp.json()
        path = self.source.local_path
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        logger.info("Product data saved to %s", path)
        return data

    def load(self) -> Any:
        """Cached copy if present, else fetch."""
        path = self.source.local_path
        if path.exists():
            logger.info("Loading product data from %s", path)
            with open(path, encoding="utf-8") as f:
                return json.load(f)
        logger.info("No local product data; fetching")
        return self.fetch()

    def refresh(self) -> Any:
        path = self.source.local_path
        if path.exists():
            path.unlink()
            logger.info("Removed local product cache %s", path)
        return self.fetch()

    def catalog(self, refresh: bool = False) -> Catalog:
        raw = self.refresh() if refresh else self.load()
        products = parse_products(raw)
        return Catalog(products=products, by_category=categorize(products))
