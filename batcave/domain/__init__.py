"""
Domain abstractions and value objects for batcave.
"""
