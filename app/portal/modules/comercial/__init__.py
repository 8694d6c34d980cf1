"""
Sales (comercial): customers, opportunities and sales orders.
"""
