"""
Services package: the compliance analytics engine and the application
services built on it
"""
