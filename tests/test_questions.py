"""Golden question generation, persistence and limit selection."""
import json

import pytest

from concierge_eval.products import Product
from concierge_eval.questions import (
    COMPETITORS,
    DIMENSIONS,
    QUESTIONS_FILENAME,
    QuestionGenerator,
    flatten,
    load_questions,
    save_questions,
    select_questions,
)

PHOTOSHOP = Product(id="photoshop", name="Photoshop", category="Creative Design", target_users=["designers"])
PREMIERE = Product(id="premiere", name="Premiere Pro", category="Video Production")
ACROBAT = Product(id="acrobat", name="Acrobat Pro", category="PDF Processing")


class TestGenerator:
    def test_ten_questions_per_product(self):
        questions = QuestionGenerator(seed=1).product_questions(PHOTOSHOP)
        assert [q.id for q in questions] == [f"photoshop-{n}" for n in range(1, 11)]
        assert [q.dimension for q in questions] == [d for d in DIMENSIONS for _ in range(2)]
        assert all(q.expected_product == "Photoshop" and q.category == "Creative Design" for q in questions)
        assert all("{" not in q.text and "}" not in q.text for q in questions)

    def test_same_seed_same_questions(self):
        first = QuestionGenerator(seed=7).generate_all([PHOTOSHOP, PREMIERE])
        second = QuestionGenerator(seed=7).generate_all([PHOTOSHOP, PREMIERE])
        assert [q.text for q in flatten(first)] == [q.text for q in flatten(second)]

    def test_competitor_matches_product_type(self):
        questions = QuestionGenerator(seed=3).product_questions(PREMIERE)
        ctx = questions[-2].metadata["context"]
        assert ctx["product_type"] == "video editing"
        assert ctx["competitor"] in COMPETITORS["video editing"]

    def test_target_user_from_product(self):
        ctx = QuestionGenerator(seed=0).context_for(PHOTOSHOP)
        assert ctx["target_user"] == "designers"
        assert ctx["functionality"] == "image editing and retouching"


class TestSelection:
    @pytest.fixture
    def groups(self):
        return QuestionGenerator(seed=5).generate_all([PHOTOSHOP, PREMIERE, ACROBAT])

    def test_spread_across_products(self, groups):
        selected = select_questions(groups, 7)
        prefixes = [q.id.rsplit("-", 1)[0] for q in selected]
        assert prefixes == ["photoshop"] * 3 + ["premiere"] * 2 + ["acrobat"] * 2

    def test_limit_below_product_count(self, groups):
        selected = select_questions(groups, 2)
        assert [q.id for q in selected] == ["photoshop-1", "premiere-1"]

    def test_no_limit_and_zero(self, groups):
        assert len(select_questions(groups)) == 30
        assert select_questions(groups, 0) == []


class TestPersistence:
    def test_save_then_load(self, tmp_path):
        groups = QuestionGenerator(seed=11).generate_all([PHOTOSHOP, ACROBAT])
        path = save_questions(groups, tmp_path, seed=11)

        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["metadata"]["total_questions"] == 20
        assert data["metadata"]["seed"] == 11

        loaded = load_questions(tmp_path)
        assert [g["product_id"] for g in loaded] == ["photoshop", "acrobat"]
        assert [(q.id, q.text, q.dimension) for q in flatten(loaded)] == [(q.id, q.text, q.dimension) for q in flatten(groups)]

    def test_missing_file(self, tmp_path):
        assert load_questions(tmp_path) is None

    def test_malformed_file(self, tmp_path):
        (tmp_path / QUESTIONS_FILENAME).write_text(json.dumps({"questions": "nope"}), encoding="utf-8")
        with pytest.raises(ValueError):
            load_questions(tmp_path)
