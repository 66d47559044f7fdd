"""
AI Music Services
Provider routing, mastering, storage, conversion and the generation workflow
"""
