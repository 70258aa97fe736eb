"""
Voice Expense Tracker - Source Package

Speak an expense, check what was understood, save it.

DESIGN PRINCIPLES:
1. AI proposes → Human confirms → System validates
2. Voice and typed entries share one validation path
3. No silent corrections
4. Every step must be auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Voice Expense Tracker Team"
