"""
Goal condition matching and funnel conversion analytics.
"""
