"""
web framework integrations, import the one you use, e.g.

from dispatchwise.integration.fastapi import app_factory
"""
