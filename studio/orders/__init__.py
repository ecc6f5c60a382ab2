"""
studio/orders
-------------
Orders, line items and the order workflow. URL prefix: /orders
"""
