"""
studio/dashboard
----------------
Management dashboard aggregates. URL prefix: /dashboard
"""
