"""
Recommendation Subsystem

HTTP routes for personalized recommendations and recommendation feedback.
"""

from .factory import create_recommendation_module
from .routes import create_recommendation_blueprint

__all__ = ['create_recommendation_module', 'create_recommendation_blueprint']
