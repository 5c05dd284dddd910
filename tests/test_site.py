"""Text predicates behind completion detection and extraction."""
from concierge_eval.site import (
    Vocabulary,
    contains_brand_recommendation,
    has_substantial_line,
    is_busy,
    is_chrome_text,
    is_generating_message,
    is_ui_text,
    is_valid_response,
)


class TestPredicates:
    def test_generating_message(self):
        assert is_generating_message("Generating response from our knowledge base")
        assert is_generating_message("One moment please")
        assert not is_generating_message("I recommend Adobe Photoshop")
        assert not is_generating_message(None)

    def test_ui_text(self):
        assert is_ui_text("Type your message here")
        assert is_ui_text("  12 - 34 ")
        assert not is_ui_text("Adobe Illustrator is great for logos")

    def test_valid_response(self):
        assert is_valid_response("I recommend Adobe Premiere Pro for editing your YouTube videos.")
        # too short
        assert not is_valid_response("Try Photoshop.")
        # loading text
        assert not is_valid_response("Please wait while we recommend something for you.")
        # no recommendation language or brand
        assert not is_valid_response("The weather today is sunny with light winds overall.")

    def test_footer_text_is_not_a_response(self):
        footer = "Copyright 2025 Adobe. All rights reserved. Privacy Policy | Terms of Use"
        assert is_chrome_text(footer)
        assert not is_valid_response(footer)
        assert not is_valid_response("We recommend Adobe Photoshop; see the Terms of Use for details.")

    def test_brand_recommendation(self):
        assert contains_brand_recommendation("Adobe Lightroom is the best way to organize your photos")
        assert not contains_brand_recommendation("Lightroom is the best way to organize photos")
        assert not contains_brand_recommendation("Adobe makes software for many different purposes")

    def test_busy_and_substance(self):
        assert is_busy("Hold tight\nGenerating...")
        assert not is_busy("I recommend Adobe Express for social posts")
        assert has_substantial_line("Header\nI recommend Adobe Express for quick social media posts")
        assert not has_substantial_line("Short\nrecommend")
        assert not has_substantial_line("Privacy policy: we recommend reading this before use")

    def test_custom_vocabulary_changes_acceptance(self):
        vocab = Vocabulary(brand="contoso", recommendation_words=("pick",), substance_keywords=("contoso",))
        text = "You should pick Contoso Studio for your editing work."
        assert is_valid_response(text, vocab)
        assert not is_valid_response("I recommend Adobe Photoshop for editing your work.", vocab)
        assert has_substantial_line(text, vocab)
