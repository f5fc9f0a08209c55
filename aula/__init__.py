"""Aula: course authoring, course consumption and quizzes on a managed backend."""
