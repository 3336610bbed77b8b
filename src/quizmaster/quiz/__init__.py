from .models import (
    SKIPPED,
    Difficulty,
    Flashcard,
    FlashcardSet,
    Question,
    Quiz,
    QuizAnalysis,
    QuizResult,
    WeakArea,
    WrongAnswer,
)
from .parsing import (
    GenerationError,
    MalformedResponseError,
    QuestionValidationError,
    clean_json_text,
    parse_analysis_payload,
    parse_question_payload,
)
from .grading import ScoreReport, grade_texts, resolve_answer_texts, score_quiz
from .flashcards import DeckReview, merge_flashcards
from .session import (
    GUEST_QUIZ_ID,
    InstantFeedback,
    QuizSession,
    SessionHandoff,
    SessionPhase,
    SessionStateError,
)
from .gateway import GenerationGateway
from .analysis import AnalysisPipeline
from .weak_areas import compute_weak_areas, load_weak_areas
from .library import (
    create_quiz_from_text,
    create_quiz_from_topic,
    edit_quiz,
    filter_quizzes,
    load_guest_quiz,
)
from .view import parse_session_command, run_quiz_session

__all__ = [
    "SKIPPED",
    "Difficulty",
    "Flashcard",
    "FlashcardSet",
    "Question",
    "Quiz",
    "QuizAnalysis",
    "QuizResult",
    "WeakArea",
    "WrongAnswer",
    "GenerationError",
    "MalformedResponseError",
    "QuestionValidationError",
    "clean_json_text",
    "parse_analysis_payload",
    "parse_question_payload",
    "ScoreReport",
    "grade_texts",
    "resolve_answer_texts",
    "score_quiz",
    "DeckReview",
    "merge_flashcards",
    "GUEST_QUIZ_ID",
    "InstantFeedback",
    "QuizSession",
    "SessionHandoff",
    "SessionPhase",
    "SessionStateError",
    "GenerationGateway",
    "AnalysisPipeline",
    "compute_weak_areas",
    "load_weak_areas",
    "create_quiz_from_text",
    "create_quiz_from_topic",
    "edit_quiz",
    "filter_quizzes",
    "load_guest_quiz",
    "parse_session_command",
    "run_quiz_session",
]
