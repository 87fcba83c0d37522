"""Templated content used instead of LLM calls.

Fast mode produces the same raw section texts an LLM run would (lists
as ``Title: description`` lines, FAQs as ``Q:``/``A:`` pairs), so pages
built from either source go through the same parsers.  The blog builders
here also fill in any section an LLM run did not produce.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from src.database import slugify
from src.services.content_parser import safe_meta_title

FAST_MODE_PROVIDER = "manual"


def _lines(items: list[tuple[str, str]]) -> str:
    return "\n".join(f"{i}. {title}: {text}" for i, (title, text) in enumerate(items, start=1))


def _fast_sections(service_name: str, website_name: str, doctor_name: str) -> dict[str, str]:
    s = service_name
    faq = [
        (f"What is {s}?", f"{s} is a dental treatment that helps restore and maintain optimal oral "
                          "health using modern dental techniques."),
        ("How long does treatment take?", "Treatment duration varies depending on individual needs, but we "
                                          "always prioritize quality results and patient comfort."),
        ("Is the treatment painful?", "With modern techniques and proper anesthesia, most patients "
                                      "experience minimal discomfort during treatment."),
        ("What can I expect during recovery?", "Recovery times vary, but we provide detailed aftercare "
                                               "instructions to ensure optimal healing and results."),
        ("How much does treatment cost?", "Treatment costs vary based on individual needs. We provide "
                                          "detailed estimates and discuss payment options during consultation."),
    ]
    return {
        "introduction": (
            f"{s} at {website_name} provides professional dental care with modern techniques and "
            f"personalized treatment plans. {doctor_name} specializes in delivering quality results "
            "for optimal oral health."
        ),
        "detailedExplanation": _lines([
            ("Professional Care", f"{s} treatment using advanced dental technology and proven methods."),
            ("Personalized Treatment", "Customized treatment plans designed specifically for your dental needs and goals."),
            ("Expert Results", f"Professional {s} services delivered by experienced dental professionals."),
            ("Modern Techniques", "State-of-the-art dental procedures ensuring comfort and optimal outcomes."),
            ("Comprehensive Care", "Complete dental care approach focusing on both immediate and long-term oral health."),
        ]),
        "treatmentNeed": _lines([
            ("Improved Oral Health", f"{s} helps maintain and restore optimal dental health and function."),
            ("Preventive Benefits", "Early treatment prevents more complex and costly dental problems in the future."),
            ("Enhanced Comfort", "Professional treatment eliminates discomfort and improves overall quality of life."),
            ("Aesthetic Improvement", "Treatment enhances the appearance of your smile and boosts confidence."),
            ("Long-term Value", "Investment in professional dental care provides lasting oral health benefits."),
        ]),
        "symptoms": _lines([
            ("Persistent Discomfort", "Ongoing pain or sensitivity that does not improve with home care."),
            ("Visible Changes", "Changes in the color, shape or position of teeth or gums."),
            ("Difficulty Chewing", "Problems biting or chewing that affect everyday eating."),
            ("Gum Irritation", "Swelling, redness or bleeding around the affected area."),
            ("Professional Recommendation", f"Your dentist identified a need for {s} during a check-up."),
        ]),
        "consequences": _lines([
            ("Problem Progression", "Untreated issues tend to spread and become harder to correct."),
            ("Increased Pain", "Mild discomfort can turn into persistent or severe pain."),
            ("Functional Loss", "Chewing and speaking can become more difficult over time."),
            ("Aesthetic Damage", "Delays can lead to visible damage that affects your smile."),
            ("Higher Costs", "Complex treatment later usually costs more than timely care now."),
        ]),
        "procedureSteps": _lines([
            ("Consultation", f"{doctor_name} examines your mouth and discusses your goals for {s}."),
            ("Treatment Planning", "We create a personalized plan using modern diagnostics."),
            ("Preparation", "The treatment area is prepared and numbed for your comfort."),
            ("Treatment", f"{s} is carried out with precise, gentle techniques."),
            ("Follow-up", "We review healing and results at a follow-up visit."),
        ]),
        "postTreatmentCare": _lines([
            ("Rest First 24 Hours", "Avoid strenuous activity for the first 24 hours after treatment."),
            ("Gentle Hygiene", "Brush and floss gently around the treated area for the first week."),
            ("Soft Diet", "Choose soft foods for the first 48 hours and avoid very hot drinks."),
            ("Manage Discomfort", "Use recommended pain relief and cold compresses as needed."),
            ("Attend Follow-ups", "Keep your follow-up appointments so we can check healing in 2 weeks."),
        ]),
        "procedureBenefits": _lines([
            ("Better Oral Health", f"{s} restores health and protects surrounding teeth."),
            ("Natural Appearance", "Results look natural and improve your smile."),
            ("Restored Function", "Eat and speak comfortably again."),
            ("Lasting Comfort", "Relief from discomfort that affects daily life."),
            ("Long-term Value", "Durable results that prevent costly problems later."),
        ]),
        "sideEffects": _lines([
            ("Temporary Sensitivity", "Mild sensitivity for a few days is a normal response."),
            ("Minor Swelling", "Some swelling may occur and usually settles within 48 hours."),
            ("Mild Discomfort", "Soreness can be managed with over-the-counter pain relief."),
            ("Rare Complications", "Infection or prolonged pain are rare; call us if they occur."),
            ("Prevention", "Following aftercare instructions keeps side effects to a minimum."),
        ]),
        "mythsAndFacts": "\n".join([
            f"Myth 1: {s} is always painful.",
            "Fact 1: Modern anesthesia and techniques keep treatment comfortable.",
            f"Myth 2: {s} is only cosmetic.",
            "Fact 2: It also protects oral health and function.",
            "Myth 3: Recovery takes weeks.",
            "Fact 3: Most patients return to normal routines quickly.",
        ]),
        "comprehensiveFAQ": "\n".join(f"Q: {q}\nA: {a}" for q, a in faq),
    }


def build_fast_mode_content(
    service_name: str,
    *,
    category: str | None = None,
    keywords: list[str] | None = None,
    website_name: str | None = None,
    doctor_name: str | None = None,
) -> dict[str, Any]:
    """Comprehensive-content result without any LLM call."""
    sections = _fast_sections(service_name, website_name or "Our Practice", doctor_name or "Dr. Smith")
    return {
        "success": True,
        "content": {
            key: {"content": text, "tokensUsed": 0, "provider": FAST_MODE_PROVIDER, "cached": False}
            for key, text in sections.items()
        },
        "generatedAt": datetime.now(UTC).isoformat(),
        "serviceName": service_name,
        "category": category,
        "keywords": keywords or [],
        "sectionsGenerated": len(sections),
        "totalSections": len(sections),
        "totalTokensUsed": 0,
        "comprehensive": True,
        "fastMode": True,
        "provider": FAST_MODE_PROVIDER,
    }


# ── Blogs ────────────────────────────────────────────────────────────

def build_blog_content_structure(
    service_name: str,
    overrides: dict[str, str] | None = None,
    faq: list[dict[str, str]] | None = None,
) -> dict[str, Any]:
    """All eleven blog sections; *overrides* replace the templated text."""
    s = service_name
    o = overrides or {}
    defaults = {
        "introduction": ("Introduction", f"{s} is an important dental treatment that can significantly "
                                         "improve your oral health and quality of life."),
        "whatIsIt": (f"What is {s}?", f"{s} is a professional dental procedure designed to address "
                                      "specific oral health needs using modern techniques."),
        "whyNeedIt": (f"Why might you need {s}?", f"You may need {s} to restore oral function, improve "
                                                  "aesthetics, prevent complications, or maintain long-term "
                                                  "dental health."),
        "signsSymptoms": ("Signs and Symptoms", f"Common indicators that you may benefit from {s} include "
                                                "persistent discomfort, visible changes, functional issues, "
                                                "and professional recommendations."),
        "consequencesDelay": ("Consequences of Delaying Treatment", f"Delaying {s} treatment can lead to more "
                                                                    "complex problems, increased costs, and "
                                                                    "compromised oral health."),
        "treatmentProcess": ("Treatment Process", f"The {s} procedure involves examination, planning, treatment "
                                                  "execution, and follow-up care for optimal results."),
        "benefits": ("Benefits of Treatment", f"{s} provides improved oral health, enhanced function, aesthetic "
                                              "improvement, and long-term value for your dental health investment."),
        "recoveryAftercare": ("Recovery and Aftercare", "Proper aftercare ensures successful healing and includes "
                                                        "following instructions, maintaining hygiene, and attending "
                                                        "follow-ups."),
        "mythsFacts": ("Myths vs Facts", f"Many misconceptions exist about {s}. Fact: Modern techniques ensure "
                                         "comfort. Fact: Professional care provides safe results."),
        "costConsiderations": ("Cost Considerations", f"{s} cost varies based on individual needs, complexity, "
                                                      "and insurance coverage. We provide detailed estimates and "
                                                      "financing options."),
    }
    structure: dict[str, Any] = {
        key: {"title": title, "content": o.get(key) or text, "anchor": slugify_anchor(key)}
        for key, (title, text) in defaults.items()
    }
    structure["faq"] = {
        "title": "Frequently Asked Questions",
        "anchor": "faq",
        "questions": faq or [
            {"question": f"How long does {s} treatment take?",
             "answer": "Treatment duration varies based on individual needs. Our team will provide a "
                       "detailed timeline during your consultation."},
            {"question": f"Is {s} covered by insurance?",
             "answer": "Insurance coverage varies by provider and plan. Our staff will help verify your "
                       "benefits and maximize coverage."},
            {"question": "What can I expect during recovery?",
             "answer": "Recovery is generally comfortable with proper care. We provide detailed aftercare "
                       "instructions and support."},
        ],
    }
    return structure


def slugify_anchor(section_key: str) -> str:
    """``whatIsIt`` → ``what-is-it``."""
    return slugify("".join(f" {c}" if c.isupper() else c for c in section_key))


# blog type → (title, introduction, section overrides, key takeaways, tags, meta topic, meta description)
_FAST_BLOGS: dict[str, tuple[str, str, dict[str, str], list[str], list[str], str, str]] = {
    "comprehensive": (
        "Complete Guide to {s}: What You Need to Know",
        "Understanding {s} is essential for making informed decisions about your dental health. This "
        "comprehensive guide covers everything you need to know about this important dental treatment, "
        "from the basics to post-treatment care.",
        {
            "introduction": "{s} represents a significant advancement in modern dental care, offering "
                            "patients effective solutions for various oral health concerns.",
            "whatIsIt": "{s} is a professional dental treatment designed to address specific oral health "
                        "needs using state-of-the-art techniques and materials.",
            "whyNeedIt": "Patients may require {s} for prevention of dental complications, restoration of "
                         "oral function, aesthetic improvement, and maintenance of long-term oral health.",
        },
        [
            "{s} is an effective dental treatment for various oral health concerns",
            "Professional care ensures safe and optimal treatment outcomes",
            "Early intervention often leads to better results and less invasive treatment",
            "Proper post-treatment care is essential for long-term success",
            "Regular dental check-ups help identify treatment needs early",
        ],
        ["treatment-guide"],
        "{s} Guide",
        "Comprehensive guide to {s} covering everything you need to know about this dental treatment, "
        "from procedure details to post-care instructions.",
    ),
    "benefits": (
        "{s} Benefits: Why This Treatment Could Change Your Life",
        "Discover the life-changing benefits of {s} and how this advanced dental treatment can improve "
        "your oral health, confidence, and overall quality of life.",
        {
            "benefits": "The primary benefits of {s} include restored function, enhanced aesthetics, improved "
                        "comfort, prevention of future complications, and increased confidence.",
        },
        [
            "{s} provides immediate and long-term oral health benefits",
            "Treatment improves both function and aesthetics",
            "Professional care ensures optimal results and patient comfort",
            "Early treatment often prevents more complex future problems",
            "Investment in dental health provides lasting quality of life improvements",
        ],
        ["dental-benefits"],
        "{s} Benefits",
        "Discover the amazing benefits of {s} treatment. Improve your oral health, confidence, and "
        "quality of life with professional dental care.",
    ),
    "procedure": (
        "{s} Procedure: Step-by-Step Guide to Your Treatment",
        "Wondering what to expect during your {s} procedure? This detailed step-by-step guide walks you "
        "through the entire treatment process.",
        {
            "treatmentProcess": "The {s} procedure involves thorough examination, personalized treatment "
                                "planning, precise execution, and comprehensive follow-up care.",
        },
        [
            "{s} follows a systematic, proven procedure",
            "Thorough preparation ensures optimal treatment outcomes",
            "Professional care and modern techniques maximize comfort",
            "Follow-up care is essential for long-term success",
            "Each step is designed with patient safety and comfort in mind",
        ],
        ["dental-procedure"],
        "{s} Procedure",
        "Step-by-step guide to the {s} procedure. Learn what happens during treatment and how to prepare "
        "for optimal results.",
    ),
    "recovery": (
        "{s} Recovery: Your Complete Aftercare Guide",
        "Proper aftercare is crucial for successful {s} results. This comprehensive recovery guide provides "
        "everything you need to know about post-treatment care, healing timeline, and tips for optimal results.",
        {
            "introduction": "Recovery from {s} is generally straightforward with proper care and guidance. "
                            "Following our detailed aftercare instructions ensures optimal healing and "
                            "long-lasting results.",
            "recoveryAftercare": "The first 24-48 hours after {s} are critical for proper healing. We provide "
                                 "specific instructions for managing any discomfort, maintaining oral hygiene, "
                                 "and supporting the healing process.",
            "treatmentProcess": "Most patients experience a predictable healing timeline following {s}. "
                                "Understanding what to expect during each phase helps ensure smooth recovery "
                                "and optimal results.",
            "benefits": "Long-term success with {s} depends on proper ongoing care and maintenance. We provide "
                        "guidance on preserving your results and maintaining optimal oral health.",
        },
        [
            "Proper aftercare is essential for successful treatment results",
            "Following instructions carefully ensures optimal healing",
            "Most patients experience comfortable, predictable recovery",
            "Long-term care maintains treatment benefits",
            "Professional support is available throughout recovery",
        ],
        ["dental-recovery", "aftercare"],
        "{s} Recovery",
        "Complete aftercare guide for {s} recovery. Learn how to care for yourself after treatment for "
        "optimal healing and results.",
    ),
    "cost": (
        "{s} Cost: Investment in Your Oral Health",
        "Understanding the cost of {s} helps you make informed decisions about your dental health "
        "investment. Learn about factors that influence pricing, insurance coverage, and financing options "
        "available.",
        {
            "introduction": "The cost of {s} varies based on individual treatment needs, complexity, and other "
                            "factors. We believe in transparent pricing and work with patients to make quality "
                            "dental care accessible and affordable.",
            "costConsiderations": "Several factors influence {s} cost including treatment complexity, "
                                  "materials used, number of appointments required, and individual patient "
                                  "needs. We provide detailed estimates and discuss all factors during "
                                  "consultation.",
            "benefits": "{s} represents an investment in your long-term oral health, overall well-being, and "
                        "quality of life. The benefits often far exceed the initial investment through "
                        "improved health and confidence.",
        },
        [
            "Treatment cost varies based on individual needs and complexity",
            "Insurance coverage and financing options are often available",
            "Investment in dental health provides long-term value",
            "Transparent pricing helps patients make informed decisions",
            "Quality care is often more cost-effective than delaying treatment",
        ],
        ["dental-cost", "dental-financing"],
        "{s} Cost",
        "Learn about {s} cost factors, insurance coverage, and financing options. Make an informed "
        "investment in your oral health.",
    ),
    "myths": (
        "{s}: Separating Myths from Facts",
        "Don't let myths and misconceptions prevent you from getting the dental care you need. We separate "
        "fact from fiction about {s} to help you make informed decisions based on accurate information.",
        {
            "introduction": "Many myths surround {s} treatment, often preventing patients from seeking "
                            "beneficial care. Understanding the facts helps you make informed decisions about "
                            "your oral health.",
            "mythsFacts": "Common myths about {s} include misconceptions about pain, cost, duration, and "
                          "results. Modern dentistry has addressed many traditional concerns through advanced "
                          "techniques and technology.",
            "whatIsIt": "The facts about {s} reveal that modern treatment is more comfortable, efficient, and "
                        "successful than ever before. Professional care ensures safe, effective results with "
                        "minimal discomfort.",
        },
        [
            "Modern techniques have addressed traditional dental treatment concerns",
            "Professional care ensures safe and effective treatment",
            "Many myths about dental procedures are outdated",
            "Accurate information helps patients make better decisions",
            "Advanced technology improves comfort and outcomes",
        ],
        ["dental-myths", "dental-facts"],
        "{s} Myths",
        "Separate myths from facts about {s}. Get accurate, evidence-based information to make confident "
        "decisions about your dental care.",
    ),
}


def build_fast_mode_blog(service_name: str, blog_type: str, category: str | None = None) -> dict[str, Any]:
    """One templated blog (camelCase document fields, no ids)."""
    title, intro, overrides, takeaways, tags, meta_topic, meta_description = _FAST_BLOGS[blog_type]
    s = service_name
    return {
        "blogType": blog_type,
        "title": title.format(s=s),
        "introduction": intro.format(s=s),
        "content": build_blog_content_structure(s, {k: v.format(s=s) for k, v in overrides.items()}),
        "keyTakeaways": [t.format(s=s) for t in takeaways],
        "tags": [slugify(s)[:50], *tags, category or "general-dentistry"],
        "category": category or "general-dentistry",
        "metaTitle": safe_meta_title(meta_topic.format(s=s)),
        "metaDescription": meta_description.format(s=s)[:150],
        "llmGenerated": False,
        "generationProvider": FAST_MODE_PROVIDER,
    }


def build_fast_mode_blogs(service_name: str, category: str | None = None) -> list[dict[str, Any]]:
    return [build_fast_mode_blog(service_name, blog_type, category) for blog_type in _FAST_BLOGS]


def build_emergency_blog(service_name: str, category: str | None = None) -> dict[str, Any]:
    """Minimal guide stored when every other blog attempt failed."""
    blog = build_fast_mode_blog(service_name, "comprehensive", category)
    blog["title"] = f"{service_name}: Patient Guide"
    blog["introduction"] = (
        f"Learn about {service_name}, what the treatment involves and how our team "
        "supports you before, during and after your visit."
    )
    blog["generationMetadata"] = {"emergencyFallback": True}
    return blog
