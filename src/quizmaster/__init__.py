"""AI-assisted quizzes and flashcards from the command line."""

__version__ = "0.1.0"
