"""
Mood Museum - encrypted mood submissions and exhibit recommendations.

This package stores encoded moods and the exhibits recommended for them in a
flat key/value backend, and reveals a mood to its owner only after the owner
signs a session challenge.
"""

__version__ = "0.1.0"
