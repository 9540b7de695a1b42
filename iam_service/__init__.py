"""
Multi-tenant IAM control plane
"""
