"""
Production planning and control (PCP): production orders.
"""
