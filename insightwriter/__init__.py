"""
insightwriter: topic insights from source articles, and illustrated articles from insights.
"""
__version__ = "0.1.0"
