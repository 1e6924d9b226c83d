"""MindSpend - personal finance tracker backend with a rule-based nudge engine."""
