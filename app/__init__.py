"""
Blogsite - blog publishing platform.
"""
