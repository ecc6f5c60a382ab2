"""
studio/products
---------------
Product price list. URL prefix: /products
"""
