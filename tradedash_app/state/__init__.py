"""
Trade lifecycle module.

Trade models, the pure transition and outcome rules, and the lifecycle
manager driving PENDING → ACTIVE → WON/LOST with exactly-once settlement.
"""
