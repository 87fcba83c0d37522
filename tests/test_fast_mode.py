"""Tests for templated (no-LLM) content."""

from __future__ import annotations

from src.prompts import BLOG_TYPES, COMPREHENSIVE_SECTIONS
from src.services.content_parser import parse_bullet_points, parse_faq, parse_myths_and_facts
from src.services.fast_mode import (
    FAST_MODE_PROVIDER,
    build_blog_content_structure,
    build_emergency_blog,
    build_fast_mode_blogs,
    build_fast_mode_content,
    slugify_anchor,
)


class TestFastModeContent:
    def test_covers_every_page_section(self):
        result = build_fast_mode_content("Root Canal", website_name="Smile Studio", doctor_name="Dr. Lee")
        assert set(result["content"]) == set(COMPREHENSIVE_SECTIONS)
        assert result["fastMode"] is True
        assert result["totalTokensUsed"] == 0
        assert all(s["provider"] == FAST_MODE_PROVIDER for s in result["content"].values())
        assert "Smile Studio" in result["content"]["introduction"]["content"]

    def test_sections_parse_like_llm_output(self):
        content = build_fast_mode_content("Root Canal")["content"]
        bullets = parse_bullet_points(content["procedureBenefits"]["content"], "Root Canal")
        assert bullets[0]["title"] == "Better Oral Health"
        assert not any(b["title"].startswith("Root Canal Point") for b in bullets)

        faq = parse_faq(content["comprehensiveFAQ"]["content"], "Root Canal", pad=False)
        assert faq[0]["question"] == "What is Root Canal?"
        assert len(faq) == 5

        myths = parse_myths_and_facts(content["mythsAndFacts"]["content"], "Root Canal")
        assert myths[0]["myth"] == "Root Canal is always painful."


class TestFastModeBlogs:
    def test_one_blog_per_type(self):
        blogs = build_fast_mode_blogs("Veneers", "cosmetic-dentistry")
        assert [b["blogType"] for b in blogs] == [t for t, _ in BLOG_TYPES]
        for blog in blogs:
            assert len(blog["metaTitle"]) <= 60
            assert len(blog["metaDescription"]) <= 150
            assert blog["tags"][0] == "veneers"
            assert blog["tags"][-1] == "cosmetic-dentistry"
            assert blog["llmGenerated"] is False

    def test_overrides_replace_template_sections(self):
        recovery = build_fast_mode_blogs("Veneers")[3]
        assert recovery["content"]["recoveryAftercare"]["content"].startswith("The first 24-48 hours after Veneers")
        assert recovery["category"] == "general-dentistry"

    def test_content_structure_has_all_sections(self):
        structure = build_blog_content_structure("Braces", {"introduction": "Custom intro"})
        assert len(structure) == 11
        assert structure["introduction"]["content"] == "Custom intro"
        assert structure["whatIsIt"]["title"] == "What is Braces?"
        assert structure["whatIsIt"]["anchor"] == "what-is-it"
        assert len(structure["faq"]["questions"]) == 3

    def test_emergency_blog_is_marked(self):
        blog = build_emergency_blog("Braces")
        assert blog["title"] == "Braces: Patient Guide"
        assert blog["generationMetadata"] == {"emergencyFallback": True}


def test_slugify_anchor():
    assert slugify_anchor("recoveryAftercare") == "recovery-aftercare"
    assert slugify_anchor("faq") == "faq"
