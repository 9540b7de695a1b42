"""
Business services
"""
