"""Korean study assistant: spaced-repetition scheduling for drill reviews."""

__version__ = "0.1.0"
