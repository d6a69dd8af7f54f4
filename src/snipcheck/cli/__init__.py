"""
Command-line interface for snipcheck, built on Typer and Rich.
"""
