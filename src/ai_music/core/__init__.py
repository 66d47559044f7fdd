"""
AI Music Core
Settings, logging, results and job status helpers
"""
