"""
taxreward: tax-on-transfer collection, fallback swap routing and lazy
pro-rata reward distribution for a managed asset.
"""

__version__ = "0.1.0"
