"""
Purchasing (compras): products, suppliers and purchase orders.
"""
