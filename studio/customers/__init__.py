"""
studio/customers
----------------
Customer registry. URL prefix: /customers
"""
