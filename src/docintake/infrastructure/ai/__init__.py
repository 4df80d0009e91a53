"""Classification provider adapters"""

from .cost_calculator import CostCalculator
from .openai_classifier import OpenAIClassifier

__all__ = ["CostCalculator", "OpenAIClassifier"]
