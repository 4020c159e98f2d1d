"""DeepReview core: the journal entry store and the AI analysis gateway."""

__version__ = "1.0.0"
