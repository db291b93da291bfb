"""Loja - in-editor chat assistant backend"""

__version__ = "1.0.0"
