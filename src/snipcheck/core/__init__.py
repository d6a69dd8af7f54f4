"""
Core primitives shared by every snipcheck component: errors, logging and
configuration.
"""
