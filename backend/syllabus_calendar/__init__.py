"""Syllabus date normalization and calendar export."""
