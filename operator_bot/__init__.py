"""
Operator market-structure signal bot
"""
