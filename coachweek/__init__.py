"""coachweek - multi-stage weekly training plan generation.

Turns an athlete's training-load statistics and a coach objective into a
validated seven-day plan by chaining specialized LLM agents, with a
single-call fallback and deterministic volume calculators.
"""

__version__ = "0.1.0"
