"""
Warranty (garantia): claims with an append-only handling history.
"""
