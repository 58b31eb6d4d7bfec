"""AI-generated flashcard quizzes for the terminal."""
