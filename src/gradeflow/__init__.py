"""gradeflow - classroom grading and practice generation backend."""

__version__ = "0.1.0"
