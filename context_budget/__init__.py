# Copyright (c) 2026 Heureum AI. All rights reserved.

"""
Context Budget - token budgeting and condensation for long LLM conversations.
"""

__version__ = "0.1.0"
