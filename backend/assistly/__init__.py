"""
Assistly - conversation flow authoring and embeddable chat widget client
"""
__version__ = "1.0.0"
