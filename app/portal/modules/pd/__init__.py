"""
R&D (P&D): projects with an append-only update log and progress metrics.
"""
