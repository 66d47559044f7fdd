"""
AI Music
Orchestrates AI music generation, mastering and storage across external providers
"""

__version__ = "0.1.0"
