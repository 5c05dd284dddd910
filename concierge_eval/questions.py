"""Golden question generation from per-dimension templates, persistence and limit selection."""
import json
import logging
import random
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

from .models import QuestionRecord, utc_now_iso
from .products import Product

logger = logging.getLogger(__name__)

QUESTIONS_FILENAME = "golden-questions.json"


@dataclass(frozen=True)
class Template:
    template: str
    variants: tuple[str, ...] = ()


# dimension -> templates; each dimension yields one question per template
TEMPLATES: dict[str, tuple[Template, ...]] = {
    "basic_product_identification": (
        Template(
            "I need a professional tool for {functionality}. Can you recommend one?",
            (
                "Can you suggest a professional tool for {functionality}?",
                "What would you recommend for {functionality} work?",
                "I'm looking for the best software for {functionality}. Any suggestions?",
            ),
        ),
        Template(
            "What {product_type} software does Adobe have that is suitable for {target_user}?",
            (
                "What Adobe {product_type} tool would you recommend for {target_user}?",
                "Which Adobe {product_type} solution is best for {target_user}?",
                "What {product_type} application from Adobe works well for {target_user}?",
            ),
        ),
    ),
    "use_case_matching": (
        Template(
            "I want to {specific_task}. What Adobe product should I use?",
            (
                "Which Adobe tool should I use for {specific_task}?",
                "What's the best Adobe product for {specific_task}?",
                "I need to {specific_task}, which Adobe software would work best?",
            ),
        ),
        Template(
            "What tool do you recommend for {work_type} projects in the {industry} field?",
            (
                "What's the best solution for {work_type} projects in {industry}?",
                "Which Adobe product is ideal for {work_type} in the {industry} industry?",
                "What would you suggest for professional {work_type} work in {industry}?",
            ),
        ),
    ),
    "skill_level_matching": (
        Template(
            "I'm a {skill_level} in {domain} and want to learn {product_function}. Which software should I start with?",
            (
                "Where should I begin as a {skill_level} learning {product_function}?",
                "What's the best starting point for {skill_level} users in {product_function}?",
                "I'm new to {domain}, which tool should I use for {product_function}?",
            ),
        ),
        Template(
            "Is there a {product_function} tool suitable for {skill_level} users?",
            (
                "Do you have a {product_function} solution for {skill_level} users?",
                "What {product_function} tool works well for {skill_level} professionals?",
                "Is there an Adobe {product_function} product designed for {skill_level} users?",
            ),
        ),
    ),
    "budget_and_pricing": (
        Template(
            "My budget is {budget} per month. Can I get {product_name} with that?",
            (
                "Is {product_name} available for {budget} per month?",
                "Can I afford {product_name} with a {budget} monthly budget?",
                "What can I get for {budget} per month from Adobe?",
            ),
        ),
        Template(
            "Are there any discount plans for {user_type} to purchase {product_name}? What is the most cost-effective plan?",
            (
                "What student discounts are available for {product_name}?",
                "Are there educational pricing options for {product_name}?",
                "What's the cheapest way to get {product_name} for {user_type}?",
            ),
        ),
    ),
    "competitor_comparison": (
        Template(
            "What are the advantages of Adobe {product_name} over {competitor}?",
            (
                "Why should I choose Adobe {product_name} instead of {competitor}?",
                "How does Adobe {product_name} compare to {competitor}?",
                "What makes Adobe {product_name} better than {competitor}?",
            ),
        ),
        Template(
            "Why choose Adobe instead of other brands for {product_type}?",
            (
                "Why should I go with Adobe for {product_type} work?",
                "What makes Adobe the better choice for {product_type} projects?",
                "Why is Adobe preferred for professional {product_type}?",
            ),
        ),
    ),
}

DIMENSIONS = tuple(TEMPLATES)

BUDGETS = ("$10", "$15", "$20", "$25", "$30", "$50", "$75", "$100")
USER_TYPES = ("students", "educators", "small businesses", "freelancers", "teams", "enterprises")
SKILL_LEVELS = ("beginner", "novice", "intermediate", "advanced", "professional", "expert")
INDUSTRIES = (
    "marketing", "advertising", "publishing", "education", "entertainment",
    "gaming", "architecture", "fashion", "e-commerce",
)
COMPETITORS = {
    "photo editing": ("GIMP", "Canva", "Figma", "Sketch"),
    "design": ("Canva", "Figma", "Sketch", "InVision"),
    "video editing": ("Final Cut Pro", "DaVinci Resolve", "Filmora", "iMovie"),
    "3D modeling": ("Blender", "Maya", "Cinema 4D", "3ds Max"),
    "PDF editing": ("PDFpen", "Foxit", "Nitro PDF", "Apple Preview"),
}

FUNCTIONALITY = {
    "photoshop": "image editing and retouching",
    "premiere": "video editing and production",
    "illustrator": "vector graphics and illustration",
    "lightroom": "photo organization and editing",
    "after effects": "motion graphics and visual effects",
    "acrobat": "PDF creation and editing",
    "express": "quick design and social media content",
    "substance": "3D texturing and modeling",
}

TASKS = {
    "photoshop": ("remove backgrounds and add effects", "retouch product photos", "create digital artwork"),
    "premiere": ("edit YouTube videos", "create social media content", "produce marketing videos"),
    "illustrator": ("create logos and branding", "design vector illustrations", "make print layouts"),
    "lightroom": ("organize and edit photos", "batch process images", "create photo collections"),
    "express": ("create Instagram posts", "design quick flyers", "make social media graphics"),
    "acrobat": ("edit PDF documents", "create interactive forms", "add digital signatures"),
    "substance": ("create 3D textures", "model game assets", "render realistic materials"),
}


def product_type(product: Product) -> str:
    category = product.category.lower()
    if "video" in category:
        return "video editing"
    if "design" in category or "creative" in category:
        return "design"
    if "photo" in category:
        return "photo editing"
    if "3d" in category:
        return "3D modeling"
    if "pdf" in category:
        return "PDF editing"
    if "audio" in category:
        return "audio editing"
    return "creative"


def work_type(product: Product) -> str:
    category = product.category.lower()
    for key, value in (
        ("video", "video production"),
        ("design", "graphic design"),
        ("photo", "photography"),
        ("3d", "3D visualization"),
        ("pdf", "document management"),
    ):
        if key in category:
            return value
    return "creative"


class QuestionGenerator:
    """Deterministic for a given seed: same products + seed produce the same questions."""

    def __init__(self, seed: Optional[int] = None, templates: Optional[dict] = None):
        self.seed = seed
        self.rng = random.Random(seed)
        self.templates = templates or TEMPLATES

    def _pick(self, options: Sequence[str]) -> str:
        return options[self.rng.randrange(len(options))]

    def _name_lookup(self, product: Product, table: dict, default):
        name = product.name.lower()
        for key, value in table.items():
            if key in name:
                return value
        return default

    def context_for(self, product: Product) -> dict:
        ptype = product_type(product)
        tasks = self._name_lookup(product, TASKS, None)
        if product.target_users:
            target = str(self._pick(product.target_users))
        elif "3d" in product.category.lower():
            target = "professionals"
        elif "quick" in product.category.lower():
            target = "beginners"
        else:
            target = "creatives"
        competitors = COMPETITORS.get(ptype)
        return {
            "product_name": product.name,
            "product_type": ptype,
            "functionality": self._name_lookup(product, FUNCTIONALITY, f"{product.category.lower()} work"),
            "target_user": target,
            "specific_task": self._pick(tasks) if tasks else "create professional content",
            "work_type": work_type(product),
            "industry": self._pick(INDUSTRIES),
            "skill_level": self._pick(SKILL_LEVELS),
            "domain": ptype.replace(" editing", "").replace(" modeling", ""),
            "product_function": ptype,
            "budget": self._pick(BUDGETS),
            "user_type": self._pick(USER_TYPES),
            "competitor": self._pick(competitors) if competitors else "other alternatives",
        }

    def product_questions(self, product: Product) -> list[QuestionRecord]:
        questions = []
        n = 1
        for dimension, templates in self.templates.items():
            for template in templates:
                ctx = self.context_for(product)
                pattern = template.template
                # Half the time, use a phrasing variant for natural variation
                if template.variants and self.rng.random() > 0.5:
                    pattern = self._pick(template.variants)
                questions.append(QuestionRecord(
                    id=f"{product.id}-{n}",
                    text=pattern.format(**ctx),
                    expected_product=product.name,
                    category=product.category,
                    dimension=dimension,
                    metadata={"template_used": template.template, "context": ctx},
                ))
                n += 1
        return questions

    def generate_all(self, products: Sequence[Product]) -> list[dict]:
        """One group per product: {product_id, product_name, category, questions}."""
        groups = []
        for product in products:
            groups.append({
                "product_id": product.id,
                "product_name": product.name,
                "category": product.category,
                "questions": self.product_questions(product),
            })
        logger.info("Generated %d questions for %d products", count_questions(groups), len(groups))
        return groups


def count_questions(groups: Sequence[dict]) -> int:
    return sum(len(g["questions"]) for g in groups)


def save_questions(groups: Sequence[dict], questions_dir: Path, seed: Optional[int] = None) -> Path:
    questions_dir.mkdir(parents=True, exist_ok=True)
    path = questions_dir / QUESTIONS_FILENAME
    payload = {
        "metadata": {
            "total_products": len(groups),
            "total_questions": count_questions(groups),
            "generated_at": utc_now_iso(),
            "dimensions": list(DIMENSIONS),
            "seed": seed,
        },
        "questions": [
            {**g, "questions": [q.to_dict() for q in g["questions"]]} for g in groups
        ],
    }
    with open(path, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2)
    logger.info("Questions saved to %s", path)
    return path


def load_questions(questions_dir: Path) -> Optional[list[dict]]:
    """Saved groups, or None when no file exists. A malformed file raises ValueError."""
    path = questions_dir / QUESTIONS_FILENAME
    if not path.exists():
        return None
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    groups = data.get("questions") if isinstance(data, dict) else None
    if not isinstance(groups, list):
        raise ValueError(f"{path}: expected an object with a 'questions' array")
    loaded = []
    for g in groups:
        loaded.append({
            "product_id": g.get("product_id", g.get("productId", "")),
            "product_name": g.get("product_name", g.get("productName", "")),
            "category": g.get("category", ""),
            "questions": [QuestionRecord.from_dict(q) for q in g.get("questions") or []],
        })
    logger.info("Loaded %d questions from %s", count_questions(loaded), path)
    return loaded


def flatten(groups: Sequence[dict]) -> list[QuestionRecord]:
    return [q for g in groups for q in g["questions"]]


def select_questions(groups: Sequence[dict], limit: Optional[int] = None) -> list[QuestionRecord]:
    """
    Spread `limit` evenly across products (first products take the remainder)
    instead of taking the first N overall. No limit returns everything.
    """
    if limit is None:
        return flatten(groups)
    if limit <= 0 or not groups:
        return []
    per_product, remainder = divmod(limit, len(groups))
    selected: list[QuestionRecord] = []
    for i, g in enumerate(groups):
        take = per_product + (1 if i < remainder else 0)
        if take:
            selected.extend(g["questions"][:take])
    logger.info("Selected %d questions (%d per product, %d products get one extra)", len(selected), per_product, remainder)
    return selected
