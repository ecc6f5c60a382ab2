"""
studio/loyalty
--------------
Points, tiers and referrals: pure policies, the settlement engine that
applies them, and the referral manager.
"""
