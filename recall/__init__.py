"""
Recall: adaptive spaced-repetition scheduling core.

Decides, per learner and per item, when the next review should happen
and how well the material is currently known.
"""

__version__ = "1.0.0"
