"""
Prompt templates for the completion provider.

Every prompt asks for a bare JSON array; the repair parser copes with the
fences and prose models add anyway.
"""
from __future__ import annotations

from studyguide.schemas import QUESTION_TARGETS

SECTIONS_TEXT_LIMIT = 10000
CONCEPTS_TEXT_LIMIT = 8000
QUIZ_TEXT_LIMIT = 5000
HARD_QUIZ_TEXT_LIMIT = 4000

SECTIONS_TEMPERATURE = 0.4
CONCEPTS_TEMPERATURE = 0.3
QUIZ_TEMPERATURES = {"easy": 0.3, "medium": 0.4, "hard": 0.4}
MAX_TOKENS = 4096

SECTIONS_PROMPT = """You are a science education expert. Analyze this scientific text and break it into 4-6 logical sections.

For EACH section, provide detailed content using these markers:
- Use "BULLET " for bullet points
- Use "NUM1. ", "NUM2. " for numbered lists
- Use "ARROW " for key highlights

TEXT TO ANALYZE:
{text}

RESPOND WITH ONLY THIS JSON (no additional text before or after):
[
  {{
    "title": "Introduction to the Topic",
    "level": 1,
    "content": [
      "Opening paragraph explaining the topic in 2-3 sentences.",
      "BULLET First important key point",
      "BULLET Second important key point",
      "Additional explanation paragraph."
    ]
  }}
]

CRITICAL: Start your response with [ and end with ]. No other text. Each section must have DIFFERENT content. Include 4-8 items per section."""

CONCEPTS_PROMPT = """Extract 15-20 unique scientific concepts from this text.

TEXT:
{text}

RESPOND WITH ONLY THIS JSON (no additional text before or after):
[
  {{"term": "Cell Membrane", "definition": "A selectively permeable barrier that surrounds the cell."}},
  {{"term": "Mitochondria", "definition": "The powerhouse of the cell that produces ATP."}}
]

CRITICAL: Start with [ and end with ]. No text before or after. Each concept must be DIFFERENT. Clear definitions."""

TIER_GUIDANCE = {
    "trueFalse": {
        "easy": "Make them straightforward and obvious.",
        "medium": "Require some thought and understanding.",
        "hard": "Make them challenging and tricky.",
    },
    "multipleChoice": {
        "easy": "Make the correct answer obvious.",
        "medium": "Make all 4 options plausible and the distractors believable.",
        "hard": "Make all 4 options very similar.",
    },
    "identification": {
        "easy": "Use full, clear descriptions.",
        "medium": "Use partial descriptions.",
        "hard": "Use brief, demanding descriptions.",
    },
}

QUIZ_FORMATS = {
    "trueFalse": """[
  {"question": "The cell membrane is selectively permeable", "answer": true, "explanation": "Correct. The cell membrane allows certain substances to pass while blocking others."},
  {"question": "Mitochondria are found in plant cells only", "answer": false, "explanation": "False. Mitochondria are found in both plant and animal cells."}
]""",
    "multipleChoice": """[
  {
    "question": "What is the function of the cell membrane?",
    "options": ["Controls what enters and exits", "Produces energy", "Stores DNA", "Makes proteins"],
    "correctIndex": 0,
    "explanation": "The cell membrane controls what enters and exits the cell"
  }
]""",
    "identification": """[
  {"question": "The organelle that produces most of the cell's ATP.", "answer": "Mitochondria", "hint": "Starts with \\"M\\""}
]""",
}

QUIZ_RULES = {
    "trueFalse": '- "answer" must be true or false (boolean, not string)',
    "multipleChoice": '- Each question has exactly 4 options in "options"\n- "correctIndex" is 0, 1, 2, or 3 (number, not string)',
    "identification": '- "answer" is the term being described\n- The question and the hint must NOT contain the answer',
}

QUIZ_NOUNS = {
    "trueFalse": "true/false questions",
    "multipleChoice": "multiple choice questions with 4 options each",
    "identification": "identification questions",
}


def sections_prompt(text: str) -> str:
    return SECTIONS_PROMPT.format(text=text[:SECTIONS_TEXT_LIMIT])


def concepts_prompt(text: str) -> str:
    return CONCEPTS_PROMPT.format(text=text[:CONCEPTS_TEXT_LIMIT])


def quiz_prompt(quiz_type: str, difficulty: str, text: str) -> str:
    count = QUESTION_TARGETS[difficulty]
    limit = HARD_QUIZ_TEXT_LIMIT if difficulty == "hard" else QUIZ_TEXT_LIMIT
    return (
        f"Create EXACTLY {count} {QUIZ_NOUNS[quiz_type]} about this scientific text. "
        f"{TIER_GUIDANCE[quiz_type][difficulty]}\n\n"
        f"TEXT: {text[:limit]}\n\n"
        "RESPOND WITH ONLY THIS JSON (no text before or after):\n"
        f"{QUIZ_FORMATS[quiz_type]}\n\n"
        "CRITICAL RULES:\n"
        "- Start with [ and end with ]\n"
        f"- Exactly {count} questions\n"
        f"{QUIZ_RULES[quiz_type]}\n"
        "- No trailing commas"
    )
