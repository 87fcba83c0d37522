"""Prompt templates for dental service pages and blog articles.

Service-page prompts use ``{{variable}}`` placeholders that the LLM
service fills in right before a call; blog prompts are rendered with the
practice details up front because every section needs them.
"""

from __future__ import annotations

import re
from dataclasses import dataclass


@dataclass(frozen=True)
class PromptTemplate:
    system: str
    user: str


_LIMITS_180 = (
    "CRITICAL LIMITS:\n- Title: Maximum 50 characters\n"
    "- Description: Maximum 180 characters (about 25-30 words maximum)\n\n"
)

DENTAL_PROMPTS: dict[str, PromptTemplate] = {
    # ── Comprehensive page sections ──────────────────────────────────
    "introduction": PromptTemplate(
        system=(
            "You are a professional dental copywriter creating patient-friendly content. "
            "Write in simple, reassuring language that patients can easily understand."
        ),
        user=(
            "Write a brief introduction for {{serviceName}} in simple patient terms. "
            "Explain what it is and why patients might need it. Keep it professional but "
            "accessible, around 100 words. Target keywords: {{keywords}}."
        ),
    ),
    "detailedExplanation": PromptTemplate(
        system="You are a dental educator. Write EXACTLY 5 bullet points only. Be extremely concise.",
        user=(
            "Explain what {{serviceName}} entails in EXACTLY 5 bullet points. " + _LIMITS_180
            + "Cover: procedure, techniques, technology, materials, outcomes. Keep descriptions "
            "extremely short and clear. DO NOT exceed character limits."
        ),
    ),
    "treatmentNeed": PromptTemplate(
        system="You are a dental expert. Write EXACTLY 5 reasons only. Be extremely concise.",
        user=(
            "List EXACTLY 5 reasons why patients need {{serviceName}}. " + _LIMITS_180
            + "Cover: health benefits, aesthetics, function, prevention, long-term health. Keep "
            "descriptions extremely short and persuasive. DO NOT exceed character limits."
        ),
    ),
    "symptoms": PromptTemplate(
        system="You are a dental diagnostician. Write EXACTLY 5 symptoms only. Be extremely concise.",
        user=(
            "List EXACTLY 5 symptoms indicating need for {{serviceName}}. " + _LIMITS_180
            + "Cover: visible signs, pain indicators, functional problems, aesthetic concerns, "
            "prevention signs. Keep descriptions extremely short and clear. DO NOT exceed "
            "character limits."
        ),
    ),
    "consequences": PromptTemplate(
        system="You are a dental health educator. Write EXACTLY 5 consequences only. Be extremely concise.",
        user=(
            "List EXACTLY 5 consequences of delaying {{serviceName}}. " + _LIMITS_180
            + "Cover: problem progression, pain increase, functional loss, aesthetic damage, "
            "health impact. Keep descriptions extremely short and serious. DO NOT exceed "
            "character limits."
        ),
    ),
    "procedureSteps": PromptTemplate(
        system="You are a dental educator. Write EXACTLY 5 steps only. Be extremely concise.",
        user=(
            "Outline {{serviceName}} in EXACTLY 5 steps. CRITICAL LIMITS:\n"
            "- Title: Maximum 50 characters\n"
            "- Description: Maximum 350 characters (about 50-60 words maximum)\n\n"
            "Use format: 1. Step Title: Description\n"
            "Emphasize comfort, safety, modern techniques. Keep descriptions extremely short "
            "and reassuring. DO NOT exceed character limits."
        ),
    ),
    "postTreatmentCare": PromptTemplate(
        system="You are a dental hygienist. Write EXACTLY 5 care instructions only. Be extremely concise.",
        user=(
            "List EXACTLY 5 post-treatment care instructions for {{serviceName}}. " + _LIMITS_180
            + "Cover: immediate care, short-term care, diet restrictions, oral hygiene, long-term "
            "maintenance. Keep descriptions extremely short and actionable. DO NOT exceed "
            "character limits."
        ),
    ),
    "procedureBenefits": PromptTemplate(
        system=(
            "You are a dental marketing expert writing benefit-focused content. "
            "Write EXACTLY 5 benefits only. Be extremely concise."
        ),
        user=(
            "List EXACTLY 5 key benefits of {{serviceName}}. " + _LIMITS_180
            + "Write exactly 5 benefits covering: health, aesthetics, function, comfort, and "
            "value. Keep descriptions extremely short and impactful. DO NOT exceed character limits."
        ),
    ),
    "sideEffects": PromptTemplate(
        system=(
            "You are a dental professional providing honest, balanced information. "
            "Write EXACTLY 5 side effects only. Be extremely concise."
        ),
        user=(
            "List EXACTLY 5 potential side effects of {{serviceName}}. " + _LIMITS_180
            + "Cover: common effects, rare complications, normal responses, when to call doctor, "
            "and prevention. Keep descriptions extremely short and clear. DO NOT exceed "
            "character limits."
        ),
    ),
    "mythsAndFacts": PromptTemplate(
        system=(
            "You are a dental expert debunking common misconceptions about dental treatments "
            "while providing accurate, evidence-based information."
        ),
        user=(
            "Present 5 common myths and facts about {{serviceName}}. Write exactly 500 words "
            "total (50 words per myth, 50 words per fact). Use this format:\n"
            "Myth 1: [Common misconception]\nFact 1: [Accurate information]\n"
            "Address common patient concerns and misconceptions with evidence-based facts."
        ),
    ),
    "comprehensiveFAQ": PromptTemplate(
        system="You are a dental practice manager. Write EXACTLY 25 FAQs only. Be extremely concise.",
        user=(
            "Generate EXACTLY 25 FAQs about {{serviceName}}. CRITICAL LIMITS:\n"
            "Q: [Question - Maximum 120 characters - very brief]\n"
            "A: [Answer - Maximum 600 characters - about 80-90 words maximum]\n\n"
            "Cover: procedure, cost, pain, recovery, candidacy, risks, alternatives, results, "
            "maintenance. Keep questions extremely short and answers very concise. DO NOT exceed "
            "character limits."
        ),
    ),
    # ── Single-section prompts ───────────────────────────────────────
    "serviceOverview": PromptTemplate(
        system=(
            "You are a professional dental copywriter creating patient-friendly, SEO-optimized "
            "content for dental practice websites."
        ),
        user=(
            "Write a comprehensive overview for {{serviceName}} dental service. Include: what it "
            "is, who needs it, why it's important for oral health. Target keywords: {{keywords}}. "
            "Keep it professional but accessible, around 150-200 words."
        ),
    ),
    "serviceBenefits": PromptTemplate(
        system="You are a dental marketing expert writing benefit-focused content that converts visitors into patients.",
        user=(
            "List 5-7 key benefits of {{serviceName}} for patients. Focus on: improved health, "
            "aesthetics, comfort, long-term value, and patient experience."
        ),
    ),
    "faqGeneration": PromptTemplate(
        system=(
            "You are a dental practice manager who answers the most common patient questions "
            "with empathy, clarity, and expertise."
        ),
        user=(
            "Generate 6-8 frequently asked questions and answers about {{serviceName}}. Cover: "
            "cost concerns, pain/discomfort, recovery time, candidacy, insurance, and effectiveness."
        ),
    ),
    "aftercareInstructions": PromptTemplate(
        system=(
            "You are a dental hygienist providing clear, actionable aftercare instructions that "
            "promote healing and prevent complications."
        ),
        user=(
            "Create aftercare instructions for {{serviceName}}. Include immediate care (first 24 "
            "hours), short-term care (1-7 days), and long-term maintenance."
        ),
    ),
    "seoContent": PromptTemplate(
        system="You are an SEO specialist creating dental content that ranks well while serving patients.",
        user=(
            "Generate SEO metadata for {{serviceName}} page: 1) Meta title (50-60 chars), "
            "2) Meta description (150-160 chars), 3) 5-8 related keywords."
        ),
    ),
}

# Generated for every service page, in this order
COMPREHENSIVE_SECTIONS: tuple[str, ...] = (
    "introduction",
    "detailedExplanation",
    "treatmentNeed",
    "symptoms",
    "consequences",
    "procedureSteps",
    "postTreatmentCare",
    "procedureBenefits",
    "sideEffects",
    "mythsAndFacts",
    "comprehensiveFAQ",
)

WEBSITE_CONTEXT_TEMPLATE = (
    '\n\nIMPORTANT: Generate unique content specifically for "{{websiteName}}" practice. '
    'Mention "{{doctorName}}" when it reads naturally. '
    'Reference "{{practiceLocation}}" when appropriate. '
    "Do not produce generic text that could belong to any other practice."
)

# ── Blogs ────────────────────────────────────────────────────────────

# (blog type, title template) in generation order
BLOG_TYPES: tuple[tuple[str, str], ...] = (
    ("comprehensive", "Complete Guide to {service}"),
    ("benefits", "Benefits of {service}"),
    ("procedure", "{service} Procedure: What to Expect"),
    ("recovery", "Recovery and Aftercare for {service}"),
    ("cost", "{service} Cost: Investment in Your Health"),
    ("myths", "{service}: Myths vs Facts"),
)

_BLOG_SECTIONS_BY_TYPE: dict[str, tuple[str, ...]] = {
    "benefits": ("introduction", "benefits", "whatIsIt", "treatmentProcess", "recoveryAftercare", "faq"),
    "procedure": ("introduction", "whatIsIt", "treatmentProcess", "recoveryAftercare", "mythsFacts", "faq"),
    "recovery": ("introduction", "treatmentProcess", "recoveryAftercare", "benefits", "faq"),
    "cost": ("introduction", "benefits", "costConsiderations", "consequencesDelay", "faq"),
    "myths": ("introduction", "mythsFacts", "whatIsIt", "benefits", "faq"),
}

_BLOG_BASE_PROMPTS: dict[str, str] = {
    "introduction": """Write an engaging blog introduction for "{service}".

Start with a rhetorical question that mirrors patient fears (e.g., "Does {service} hurt?").
Acknowledge legitimate concerns, then provide immediate reassurance.
Use conversational yet authoritative tone.
Include {website} and {doctor} naturally.
End with a preview of what the article will cover.
Target: 300-400 words.
Keywords: {keywords}""",
    "whatIsIt": """Explain "{service}" in simple, patient-friendly terms.

Cover:
- Basic definition in non-technical language
- When and why it's recommended
- How it differs from similar treatments
- Modern techniques used at {website}

Use affirming language and avoid dental jargon.
Target: 400-500 words.""",
    "whyNeedIt": """Explain why patients need "{service}" using a problem-solution approach.

Structure:
- Common dental problems that require this treatment
- How these problems develop and progress
- Why early intervention matters
- What {doctor} looks for during evaluation

Use empathetic tone addressing patient concerns.
Target: 400-500 words.""",
    "signsSymptoms": """Describe signs and symptoms indicating need for "{service}".

Cover:
- Early warning signs patients notice
- Progressive symptoms that worsen over time
- When symptoms require immediate attention
- How {website} evaluates these symptoms

Validate patient experiences and encourage seeking help.
Target: 400-500 words.""",
    "consequencesDelay": """Explain consequences of delaying "{service}".

Address:
- How problems worsen without treatment
- Increased complexity and cost over time
- Impact on overall oral health
- Quality of life effects
- Why {doctor} recommends timely treatment

Balance urgency with reassurance.
Target: 300-400 words.""",
    "treatmentProcess": """Describe the "{service}" procedure with full transparency.

Break down:
- Pre-treatment consultation at {website}
- Step-by-step procedure explanation
- Modern techniques and technology used
- Comfort measures and pain management
- What patients experience during treatment

Emphasize {doctor}'s expertise and patient care.
Target: 500-600 words.""",
    "benefits": """Highlight benefits of "{service}" with a focus on positive outcomes.

Cover:
- Immediate improvements patients notice
- Long-term oral health benefits
- Functional improvements (eating, speaking)
- Aesthetic enhancements
- Quality of life improvements
- Success stories from {website}

Use affirmative, encouraging language.
Target: 400-500 words.""",
    "recoveryAftercare": """Provide recovery and aftercare guidance for "{service}".

Include:
- What to expect immediately after treatment
- Day-by-day recovery timeline
- Pain management strategies
- Diet and activity guidelines
- Oral hygiene modifications
- When to contact {doctor}

Be specific and actionable.
Target: 400-500 words.""",
    "mythsFacts": """Address common myths about "{service}".

Format as Myth vs. Fact pairs:
- 5-6 common misconceptions patients have
- Clear, factual corrections for each myth
- Why these myths persist
- What modern {service} actually involves at {website}

Use "Myth:" and "Fact:" format for clarity.
Target: 500-600 words.""",
    "costConsiderations": """Discuss cost considerations for "{service}".

Address:
- Factors that affect treatment cost
- Value of investing in oral health
- Comparison with cost of not treating
- Insurance and payment options at {website}
- Why quality care is worth the investment

Focus on value rather than specific prices.
Target: 300-400 words.""",
    "faq": """Create a comprehensive FAQ section for "{service}".

Generate 15-20 questions covering:
- Procedure details and experience
- Pain and discomfort concerns
- Recovery and healing
- Cost and insurance
- Results and expectations
- Comparison with alternatives

Use the format "Q: question" followed by "A: answer".
Questions should mirror actual patient searches.
Answers should be 50-100 words each, empathetic and informative.
Include {website} and {doctor} references naturally.""",
}

_PLACEHOLDER = re.compile(r"\{\{(\w+)\}\}")


def render_template(template: str, variables: dict[str, object] | None) -> str:
    """Replace ``{{name}}`` placeholders; unknown names are left untouched."""
    if not variables:
        return template
    return _PLACEHOLDER.sub(
        lambda m: str(variables[m.group(1)]) if m.group(1) in variables else m.group(0),
        template,
    )


def get_blog_prompts(
    service_name: str,
    blog_type: str,
    *,
    website_name: str,
    doctor_name: str,
    keywords: list[str] | None = None,
) -> dict[str, str]:
    """Return the ordered section → prompt mapping for one blog type."""
    values = {
        "service": service_name,
        "website": website_name,
        "doctor": doctor_name,
        "keywords": ", ".join(keywords or []),
    }
    prompts = {key: text.format(**values) for key, text in _BLOG_BASE_PROMPTS.items()}

    if blog_type == "benefits":
        prompts["introduction"] = prompts["introduction"].replace(
            "Start with a rhetorical question", "Start with the positive outcomes patients achieve",
        )

    sections = _BLOG_SECTIONS_BY_TYPE.get(blog_type)
    if sections is None:
        return prompts
    return {key: prompts[key] for key in sections}
