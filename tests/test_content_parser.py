"""Tests for the LLM text parsers."""

from __future__ import annotations

from src.services.content_parser import (
    BULLET_CONTENT_MAX,
    BULLET_TITLE_MAX,
    DEFAULT_META_DESCRIPTION,
    FAQ_QUESTION_MAX,
    categorize_faq,
    clean_content,
    extract_timeframe,
    parse_aftercare,
    parse_bullet_points,
    parse_faq,
    parse_myths_and_facts,
    parse_seo_description,
    parse_seo_keywords,
    parse_seo_title,
    parse_steps,
    safe_meta_title,
)

# ── Cleanup helpers ──────────────────────────────────────────────────


class TestCleanContent:
    def test_strips_markdown_and_labels(self):
        text = "**Answer:** Use `floss` daily.  See [our guide](http://example.com)."
        assert clean_content(text) == "Use floss daily. See our guide."

    def test_non_string_is_empty(self):
        assert clean_content(None) == ""
        assert clean_content(42) == ""

    def test_removes_headings(self):
        assert clean_content("## Recovery\nRest well") == "Recovery Rest well"


class TestCategorizeFaq:
    def test_known_categories(self):
        assert categorize_faq("How much does it cost?") == "cost"
        assert categorize_faq("Does it hurt?") == "pain"
        assert categorize_faq("Am I a good candidate?") == "candidacy"

    def test_unmatched_is_general(self):
        assert categorize_faq("Why choose us?") == "general"


class TestExtractTimeframe:
    def test_finds_first_known_phrase(self):
        assert extract_timeframe("Avoid hot drinks for 48 hours") == "48 hours"
        assert extract_timeframe("during the first week") == "First week"

    def test_default(self):
        assert extract_timeframe("Be gentle") == "First 24 hours"


# ── Bullet points / steps ────────────────────────────────────────────


class TestParseBulletPoints:
    def test_titled_lines_padded_to_five(self):
        content = (
            "1. **Natural Look**: Implants look like real teeth.\n"
            "2. **Durability**: They can last for decades.\n"
            "3. **Bone Health**: They preserve the jawbone."
        )
        bullets = parse_bullet_points(content, "Implants")
        assert len(bullets) == 5
        assert [b["title"] for b in bullets[:3]] == ["Natural Look", "Durability", "Bone Health"]
        assert bullets[0]["content"] == "Implants look like real teeth."
        assert bullets[3]["title"] == "Implants Point 4"

    def test_azure_bullet_format(self):
        content = "• **Comfort**: Modern anesthesia keeps you comfortable. • **Speed**: Most visits take an hour."
        bullets = parse_bullet_points(content, "Whitening")
        assert bullets[0] == {"title": "Comfort", "content": "Modern anesthesia keeps you comfortable."}
        assert bullets[1] == {"title": "Speed", "content": "Most visits take an hour."}

    def test_list_lines_without_titles(self):
        content = "- Brighter smile within one visit\n- Safe for enamel when supervised"
        bullets = parse_bullet_points(content, "Whitening")
        assert bullets[0] == {"title": "Whitening Point 1", "content": "Brighter smile within one visit"}
        assert bullets[1]["title"] == "Whitening Point 2"

    def test_empty_and_garbage_yield_defaults(self):
        for value in (None, "", "   ", 123):
            bullets = parse_bullet_points(value, "Braces")
            assert [b["title"] for b in bullets] == [f"Braces Point {n}" for n in range(1, 6)]

    def test_fields_are_truncated(self):
        content = f"{'T' * 100}: {'b' * 500}"
        bullet = parse_bullet_points(content)[0]
        assert len(bullet["title"]) == BULLET_TITLE_MAX
        assert len(bullet["content"]) == BULLET_CONTENT_MAX

    def test_extra_items_are_dropped(self):
        content = "\n".join(f"Point{n}: detail number {n}" for n in range(8))
        assert len(parse_bullet_points(content, count=5)) == 5


class TestParseSteps:
    def test_numbers_steps_in_order(self):
        content = "1. Consultation: We examine your teeth.\n2. Placement: The implant is placed."
        steps = parse_steps(content, "Step")
        assert [s["stepNumber"] for s in steps] == [1, 2, 3, 4, 5]
        assert steps[0]["title"] == "Consultation"
        assert steps[1]["description"] == "The implant is placed."


# ── FAQ ──────────────────────────────────────────────────────────────

FAQ_TEXT = (
    "Q1: How long does it take? A1: About two hours.\n"
    "Q2: Does it hurt? A2: You will be numb throughout."
)


class TestParseFaq:
    def test_parses_pairs_without_padding(self):
        faq = parse_faq(FAQ_TEXT, "Implants", pad=False)
        assert faq == [
            {"question": "How long does it take?", "answer": "About two hours.", "category": "procedure", "order": 1},
            {"question": "Does it hurt?", "answer": "You will be numb throughout.", "category": "pain", "order": 2},
        ]

    def test_pads_with_default_topics(self):
        faq = parse_faq(FAQ_TEXT, "Implants")
        assert len(faq) == 25
        assert faq[2]["question"] == "What should I know about pain and discomfort for Implants?"
        assert [f["order"] for f in faq] == list(range(1, 26))

    def test_caps_at_max_questions(self):
        text = "\n".join(f"Q: Question number {n}? A: Answer number {n}." for n in range(30))
        assert len(parse_faq(text, "Implants", pad=False)) == 25

    def test_long_question_truncated(self):
        faq = parse_faq(f"Q: {'w' * 200}? A: yes", "Implants", pad=False)
        assert len(faq[0]["question"]) == FAQ_QUESTION_MAX

    def test_empty_without_padding(self):
        assert parse_faq("", "Implants", pad=False) == []


# ── Myths and facts ──────────────────────────────────────────────────


class TestParseMythsAndFacts:
    def test_labelled_pairs(self):
        content = (
            "Myth 1: Implants are painful.\nFact 1: The procedure is done under anesthesia.\n"
            "Myth 2: Implants look fake.\nFact 2: They look natural.\n"
            "Myth 3: Only older people get them.\nFact 3: Adults of any age qualify."
        )
        items = parse_myths_and_facts(content, "Implants")
        assert len(items) == 5
        assert items[1] == {"myth": "Implants look fake.", "fact": "They look natural."}
        assert "Implants" in items[4]["myth"]

    def test_defaults(self):
        items = parse_myths_and_facts(None, "Veneers", count=3)
        assert len(items) == 3
        assert all("Veneers" in i["fact"] for i in items)


# ── Aftercare ────────────────────────────────────────────────────────


class TestParseAftercare:
    def test_titled_items_with_timeframes(self):
        content = (
            "- Avoid hot drinks: Skip hot drinks for the first 24 hours.\n"
            "- Rinse gently: Use salt water after 48 hours."
        )
        items = parse_aftercare(content)
        assert items == [
            {"title": "Avoid hot drinks", "description": "Skip hot drinks for the first 24 hours.", "timeframe": "24 hours"},
            {"title": "Rinse gently", "description": "Use salt water after 48 hours.", "timeframe": "48 hours"},
        ]

    def test_empty_gives_standard_care(self):
        assert parse_aftercare("")[0]["title"] == "Follow Standard Care"

    def test_plain_text_becomes_one_instruction(self):
        items = parse_aftercare("Keep the area clean and avoid chewing hard food.")
        assert len(items) == 1
        assert items[0]["title"] == "Follow Care Instructions"
        assert items[0]["timeframe"] == "First 24 hours"

    def test_at_most_five(self):
        content = "\n".join(f"Tip {n}: Do thing {n}" for n in range(9))
        assert len(parse_aftercare(content)) == 5


# ── SEO ──────────────────────────────────────────────────────────────

SEO_TEXT = (
    "Title: Dental Implants in Porto | Smile Studio\n"
    "Meta Description: Replace missing teeth with natural-looking dental implants at Smile Studio in Porto.\n"
    "Keywords: dental implants, tooth replacement, implant cost"
)


class TestSeo:
    def test_safe_meta_title(self):
        assert safe_meta_title("Dental Implants") == "Dental Implants | Dental Care"
        long_title = safe_meta_title("Full Mouth Reconstruction With Zirconia Implant Bridges")
        assert len(long_title) <= 60
        assert long_title.endswith("... | Dental Care")

    def test_parse_title(self):
        assert parse_seo_title(SEO_TEXT, "Dental Implants") == "Dental Implants in Porto | Smile Studio"
        assert parse_seo_title("nothing useful", "Braces") == "Braces | Dental Care"

    def test_parse_description_bounds(self):
        assert parse_seo_description(SEO_TEXT).startswith("Replace missing teeth")
        assert parse_seo_description("Description: too short") == DEFAULT_META_DESCRIPTION

    def test_parse_keywords(self):
        assert parse_seo_keywords(SEO_TEXT) == ["dental implants", "tooth replacement", "implant cost"]
        assert parse_seo_keywords(None, ["braces"]) == ["braces"]

    def test_keywords_capped_at_ten(self):
        line = "Keywords: " + ", ".join(f"kw{n}" for n in range(15))
        assert len(parse_seo_keywords(line)) == 10
