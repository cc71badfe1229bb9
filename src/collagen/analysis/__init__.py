from collagen.analysis.classifier import classify, has_transparency

__all__ = [
    "classify",
    "has_transparency",
]
