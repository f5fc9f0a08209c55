"""Learning context: catalog, course consumption, progress, comments and quizzes."""
