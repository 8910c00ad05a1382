from typing import Dict, List, Optional, Tuple

from utils.errors import QuestionNotFound, QuestionsNotFound

CORRECT_MARKER = "@"
QUESTIONS_PER_LEVEL = 10

QUESTION_COLUMNS = """
    sl, level, question_order, question_text, question_image_url,
    option_1, option_2, option_3, option_4,
    explanation_text, explanation_url, subject, topic, medium
"""


def medium_tiers(medium: str) -> List[Optional[str]]:
    """Locale preference tiers, most specific first. None means any medium."""
    tiers: List[Optional[str]] = [medium]
    if medium != "english":
        tiers.append("english")
    tiers.append(None)
    return tiers


def question_in_tier(question: Dict, tier: Optional[str]) -> bool:
    """A tier serves its own medium plus questions shared by both mediums."""
    return tier is None or question["medium"] in (tier, "both")


def resolve_level_questions(conn, level: int, medium: str) -> Tuple[Optional[str], List[Dict]]:
    """Pick the best locale tier that has questions for a level.

    Returns the tier (stored on the attempt so answers can be checked against
    it) together with that tier's questions.
    """
    cursor = conn.cursor()
    for tier in medium_tiers(medium):
        if tier is None:
            cursor.execute(
                f"SELECT {QUESTION_COLUMNS} FROM questions WHERE level = ? ORDER BY question_order ASC",
                (level,),
            )
        else:
            cursor.execute(
                f"""
                SELECT {QUESTION_COLUMNS} FROM questions
                WHERE level = ? AND medium IN (?, 'both')
                ORDER BY question_order ASC
                """,
                (level, tier),
            )
        rows = [dict(row) for row in cursor.fetchall()]
        if rows:
            return tier, rows
    raise QuestionsNotFound()


def question_options(question: Dict) -> List[str]:
    return [question["option_1"], question["option_2"], question["option_3"], question["option_4"]]


def correct_option(question: Dict) -> Optional[int]:
    """1-based index of the option carrying the correct-answer marker."""
    for index, option in enumerate(question_options(question), start=1):
        if option and option.startswith(CORRECT_MARKER):
            return index
    return None


def present_question(question: Dict) -> Dict:
    """Client view of a question: the correct-answer marker is stripped."""
    return {
        "sl": question["sl"],
        "question_order": question["question_order"],
        "question_text": question["question_text"],
        "question_image_url": question["question_image_url"],
        "options": [
            option[len(CORRECT_MARKER):] if option.startswith(CORRECT_MARKER) else option
            for option in question_options(question)
        ],
        "explanation_text": question["explanation_text"],
        "explanation_url": question["explanation_url"],
        "subject": question["subject"],
        "topic": question["topic"],
    }


def get_question(conn, question_id: int) -> Dict:
    cursor = conn.cursor()
    cursor.execute(f"SELECT {QUESTION_COLUMNS} FROM questions WHERE sl = ?", (question_id,))
    row = cursor.fetchone()
    if not row:
        raise QuestionNotFound()
    return dict(row)
