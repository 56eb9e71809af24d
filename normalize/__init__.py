"""
Normalize package: data contracts and raw payload converters.
"""
