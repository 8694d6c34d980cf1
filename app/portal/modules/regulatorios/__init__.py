"""
Regulatory documents (regulatorios): registrations and certificates with a validity date.
"""
