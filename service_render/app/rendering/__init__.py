"""
Rendering collaborators for the page service.
"""
